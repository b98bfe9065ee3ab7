"""Provider descriptor: which backend a record publishes to, and its filters."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dnsop.base.supported_providers import existing_providers
from dnsop.model.endpoint import normalize_name


class ProviderDescriptor(BaseModel):
    """A named, namespaced reference to a DNS backend.

    ``config`` is validated by the backend's config model when the provider
    is resolved. ``domain_filter`` entries are domain suffixes;
    ``zone_id_filter`` entries are exact zone IDs.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    namespace: str = "default"
    type: existing_providers
    config: dict[str, Any] = Field(default_factory=dict)
    domain_filter: list[str] = Field(default_factory=list, alias="domainFilter")
    zone_id_filter: list[str] = Field(default_factory=list, alias="zoneIDFilter")

    @field_validator("domain_filter")
    @classmethod
    def _normalize_filter(cls, v: list[str]) -> list[str]:
        return [normalize_name(d) for d in v if d.strip()]

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"
