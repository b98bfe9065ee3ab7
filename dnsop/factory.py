"""Provider factory.

Provides :func:`provider_factory`, the single entry-point for creating
DNS backends, and :func:`resolve_provider`, which reuses one backend per
descriptor config through :class:`~dnsop.base.client_cache.ProviderCache`.
"""

from typing import overload, Literal, Any

from dnsop.aws.provider import Route53Provider
from dnsop.base import ProviderBlueprint, existing_providers
from dnsop.base.client_cache import ProviderCache
from dnsop.base.config import validate_config
from dnsop.gcp.provider import CloudDNSProvider
from dnsop.inmemory.provider import InMemoryProvider
from dnsop.model.provider import ProviderDescriptor


# Provider registry: provider type -> backend class
PROVIDER_REGISTRY: dict[str, type[ProviderBlueprint]] = {
    "aws": Route53Provider,
    "gcp": CloudDNSProvider,
    "inmemory": InMemoryProvider,
}


@overload
def provider_factory(provider_type: Literal["aws"], config: dict) -> Route53Provider: ...


@overload
def provider_factory(provider_type: Literal["gcp"], config: dict) -> CloudDNSProvider: ...


@overload
def provider_factory(provider_type: Literal["inmemory"], config: dict) -> InMemoryProvider: ...


def provider_factory(provider_type: existing_providers, config: dict) -> Any:
    """
    Create a DNS backend for the given provider type.
    Args:
        provider_type: The provider type (e.g., 'aws', 'gcp', 'inmemory').
        config: Configuration dictionary validated by the provider's config model.
    Returns:
        An instance of the requested backend.
    Raises:
        ValueError: If the provider type is not supported.
        pydantic.ValidationError: If the config is invalid.
    """
    if provider_type not in PROVIDER_REGISTRY:
        raise ValueError(f"Unsupported provider: {provider_type}")

    provider_class = PROVIDER_REGISTRY[provider_type]
    config_obj = validate_config(provider_type, config)
    return provider_class(config_obj)


def resolve_provider(descriptor: ProviderDescriptor) -> ProviderBlueprint:
    """Return the cached backend for *descriptor*, creating it on first use.

    Filters are not part of the cache key: changing a descriptor's domain
    or zone ID filter keeps the same backend.
    """
    return ProviderCache().get_or_create(
        descriptor.type, descriptor.config, provider_factory, descriptor_key=descriptor.key
    )


def release_provider(descriptor_key: str) -> None:
    """Forget a deleted descriptor so its backend can be dropped."""
    ProviderCache().release(descriptor_key)
