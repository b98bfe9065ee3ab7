"""DNS record value objects shared by the engines and provider backends."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Record types managed by the engines; providers may return others.
A_RECORD = "A"
CNAME_RECORD = "CNAME"
TXT_RECORD = "TXT"

# Provider-specific property vocabulary.
PROVIDER_SPECIFIC_WEIGHT = "weight"
PROVIDER_SPECIFIC_GEO_CODE = "geo-code"
WILDCARD_GEO = "*"

OWNER_LABEL = "owner"
OWNER_SEPARATOR = "&&"


def normalize_name(name: str) -> str:
    """Lower-case a DNS name and drop its trailing dot."""
    return name.strip().rstrip(".").lower()


class Endpoint(BaseModel):
    """A single DNS record set: name, type, optional set identifier and targets.

    Endpoints are immutable and compared structurally. ``labels`` carry
    metadata that never reaches the provider as record data (the ``owner``
    label holds the writers that claim the record).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dns_name: str = Field(..., alias="dnsName")
    targets: tuple[str, ...] = Field(default_factory=tuple)
    record_type: str = Field(..., alias="recordType")
    set_identifier: str = Field(default="", alias="setIdentifier")
    record_ttl: int = Field(default=0, alias="recordTTL", ge=0)
    labels: dict[str, str] = Field(default_factory=dict)
    provider_specific: dict[str, str] = Field(default_factory=dict, alias="providerSpecific")

    @field_validator("dns_name")
    @classmethod
    def _normalize_dns_name(cls, v: str) -> str:
        v = normalize_name(v)
        if not v:
            raise ValueError("DNS name cannot be empty")
        return v

    @field_validator("record_type")
    @classmethod
    def _normalize_record_type(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("provider_specific", mode="before")
    @classmethod
    def _provider_specific_from_list(cls, v: Any) -> Any:
        # external-dns style: [{"name": "weight", "value": "100"}]
        if isinstance(v, list):
            return {item["name"]: item["value"] for item in v}
        return v

    @model_validator(mode="after")
    def _normalize_targets(self) -> Endpoint:
        if self.record_type == CNAME_RECORD:
            targets = sorted({normalize_name(t) for t in self.targets})
        elif self.record_type == A_RECORD:
            targets = sorted(set(self.targets))
        else:
            return self
        # frozen model: bypass __setattr__ during validation
        object.__setattr__(self, "targets", tuple(targets))
        return self

    # --- Identity ---

    def key(self) -> tuple[str, str, str]:
        """Identity key ``(dns_name, record_type, set_identifier)``."""
        return (self.dns_name, self.record_type, self.set_identifier)

    def same_shape(self, other: Endpoint) -> bool:
        """True if both records would publish the same data (labels ignored)."""
        return (
            set(self.targets) == set(other.targets)
            and self.record_ttl == other.record_ttl
            and self.provider_specific == other.provider_specific
        )

    # --- Ownership ---

    def owners(self) -> frozenset[str]:
        raw = self.labels.get(OWNER_LABEL, "")
        return frozenset(o for o in raw.split(OWNER_SEPARATOR) if o)

    def with_owners(self, owners: Iterable[str]) -> Endpoint:
        """Return a copy whose ``owner`` label lists *owners* (sorted)."""
        labels = {k: v for k, v in self.labels.items() if k != OWNER_LABEL}
        owners = sorted(set(owners))
        if owners:
            labels[OWNER_LABEL] = OWNER_SEPARATOR.join(owners)
        return self.model_copy(update={"labels": labels})

    def without_labels(self) -> Endpoint:
        return self.model_copy(update={"labels": {}})

    # --- Provider-specific properties ---

    def get_provider_specific(self, name: str, default: str | None = None) -> str | None:
        return self.provider_specific.get(name, default)

    def with_provider_specific(self, name: str, value: str) -> Endpoint:
        return self.model_copy(
            update={"provider_specific": {**self.provider_specific, name: value}}
        )

    def sort_key(self) -> tuple[str, str, str]:
        """Ordering used for every endpoint list the engines emit."""
        return (self.dns_name + self.set_identifier, self.record_type, self.set_identifier)

    def __str__(self) -> str:
        sid = f" [{self.set_identifier}]" if self.set_identifier else ""
        return (
            f"{self.dns_name} {self.record_ttl} IN {self.record_type}{sid} "
            f"{' '.join(self.targets)}"
        )


class Changes(BaseModel):
    """Record changes to apply to one zone.

    ``update_old`` and ``update_new`` are matched by position.
    """

    model_config = ConfigDict(populate_by_name=True)

    create: list[Endpoint] = Field(default_factory=list)
    update_old: list[Endpoint] = Field(default_factory=list, alias="updateOld")
    update_new: list[Endpoint] = Field(default_factory=list, alias="updateNew")
    delete: list[Endpoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_update_pairs(self) -> Changes:
        if len(self.update_old) != len(self.update_new):
            raise ValueError("updateOld and updateNew must have the same length")
        return self

    def has_changes(self) -> bool:
        return bool(self.create or self.update_old or self.update_new or self.delete)


class Zone(BaseModel):
    """One entry of a provider's zone catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    domain_name: str = Field(..., alias="domainName")

    @field_validator("domain_name")
    @classmethod
    def _normalize_domain(cls, v: str) -> str:
        return normalize_name(v)


__all__ = [
    "A_RECORD",
    "CNAME_RECORD",
    "TXT_RECORD",
    "PROVIDER_SPECIFIC_WEIGHT",
    "PROVIDER_SPECIFIC_GEO_CODE",
    "WILDCARD_GEO",
    "OWNER_LABEL",
    "OWNER_SEPARATOR",
    "normalize_name",
    "Endpoint",
    "Changes",
    "Zone",
]
