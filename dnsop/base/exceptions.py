"""
dnsop exception hierarchy.

Every failure raised by the engines inherits from :class:`DNSOpError`.
The four families mirror how a reconciliation pass treats them:
validation errors and arbitration errors block the pass until the input
changes, zone errors are steady-state topology conditions, and provider
errors come from the DNS backend (only :class:`TransientProviderError`
is retried).
"""


# ── Base ──────────────────────────────────────────────────────────────
class DNSOpError(Exception):
    """Root exception for all dnsop errors."""


# ── Input validation ─────────────────────────────────────────────────
class ValidationError(DNSOpError):
    """Base exception for invalid input."""


class EmptyHostnameError(ValidationError):
    """Endpoints were requested for an empty hostname."""


class MissingObjectLabelsError(ValidationError):
    """Load-balanced routing needs the labels of the target object."""


class UnknownRoutingStrategyError(ValidationError):
    """Routing strategy is neither simple nor loadbalanced."""


class RoutingValidationError(ValidationError):
    """Routing is missing a required field or has a bad custom weight."""


class EndpointValidationError(ValidationError):
    """Endpoint set of a record is inconsistent with its root host."""


class OwnerIDImmutableError(ValidationError):
    """An update tried to set, change or clear an assigned owner ID."""


# ── Merge / consistency ──────────────────────────────────────────────
class ArbitrationError(DNSOpError):
    """Base exception for conflicts between writers of the same zone."""


class RecordTypeConflictError(ArbitrationError):
    """A record exists at the same name with a different type."""

    def __init__(self, dns_name: str, record_type: str, existing_type: str) -> None:
        self.dns_name = dns_name
        self.record_type = record_type
        self.existing_type = existing_type
        super().__init__(
            f"record type conflict, cannot update endpoint '{dns_name}' with record type "
            f"'{record_type}' when endpoint already exists with record type '{existing_type}'"
        )


class InvalidTargetError(ArbitrationError):
    """A target inside a managed root host is not defined by any endpoint."""

    def __init__(self, dns_name: str, target: str, root_hosts: list[str]) -> None:
        self.dns_name = dns_name
        self.target = target
        self.root_hosts = root_hosts
        super().__init__(
            f"invalid target, endpoint '{dns_name}' has target '{target}' that matches the "
            f"root host filters '[{' '.join(root_hosts)}]' but does not exist in the list of "
            f"local or remote endpoints"
        )


# ── Zone topology ────────────────────────────────────────────────────
class ZoneError(DNSOpError):
    """Base exception for zone assignment."""


class NoSuitableZoneError(ZoneError):
    """No zone in the provider catalog can host the root host."""


class ZoneFilterMismatchError(ZoneError):
    """A previously assigned zone is no longer allowed by the provider."""


# ── DNS provider ─────────────────────────────────────────────────────
class DNSProviderError(DNSOpError):
    """Base exception for DNS provider operations."""


class TransientProviderError(DNSProviderError):
    """Throttling, timeouts or server-side failures worth retrying."""


class ZoneNotFoundError(DNSProviderError):
    """DNS zone not found."""


class RecordNotFoundError(DNSProviderError):
    """DNS record not found."""


class RecordAlreadyExistsError(DNSProviderError):
    """DNS record already exists."""


class UnsupportedRecordError(DNSProviderError):
    """The backend cannot express this record (e.g. routing policies)."""


# ── Resource store ───────────────────────────────────────────────────
class ResourceNotFoundError(DNSOpError):
    """A record resource or provider descriptor does not exist."""


class ResourceConflictError(DNSOpError):
    """A resource with the same namespace and name already exists."""
