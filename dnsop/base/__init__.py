"""Provider blueprint and core utilities.

Every DNS backend inherits from :class:`ProviderBlueprint`. Import it to
type-hint your own code or to plug in a custom provider.
"""

from .provider import ProviderBlueprint
from .supported_providers import existing_providers


__all__ = [
    "ProviderBlueprint",
    "existing_providers",
]
