"""
Pydantic configuration models for provider backends and the controller.

Provider descriptors carry a free-form ``config`` dict; it is validated
against the backend's model when the provider is resolved, so a bad
descriptor surfaces as a record condition instead of an SDK error deep
inside a reconcile pass.

Unset fields fall back to environment variables. Where neither is set,
credentials stay ``None`` and the SDK's own credential chain applies.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field, model_validator


def _fill_from_env(values: dict[str, Any], env_map: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    """Set each missing field from the first of its environment variables that is set."""
    for field, env_vars in env_map.items():
        if values.get(field):
            continue
        for env_var in env_vars:
            if os.environ.get(env_var):
                values[field] = os.environ[env_var]
                break
    return values


class AWSConfig(BaseModel):
    """Configuration for the Route 53 backend.

    Route 53 is a global service; ``region_name`` only selects the STS and
    API endpoint region. ``zone_type`` limits the catalog to public or
    private hosted zones (both when unset).
    """

    model_config = ConfigDict(extra="forbid")

    aws_access_key_id: str | None = Field(
        default=None, description="Access key; SDK credential chain when unset"
    )
    aws_secret_access_key: str | None = Field(default=None, description="Secret for the access key")
    region_name: str | None = Field(default=None, description="Region of the API endpoint")
    endpoint_url: str | None = Field(
        default=None, description="Route 53 compatible endpoint (e.g. a local emulator)"
    )
    zone_type: Literal["public", "private"] | None = Field(
        default=None, description="Only manage hosted zones of this visibility"
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to the standard AWS and ``DNSOP_AWS_*`` environment variables."""
        return _fill_from_env(values, {
            "aws_access_key_id": ("AWS_ACCESS_KEY_ID",),
            "aws_secret_access_key": ("AWS_SECRET_ACCESS_KEY",),
            "region_name": ("AWS_DEFAULT_REGION", "AWS_REGION"),
            "endpoint_url": ("AWS_ENDPOINT_URL_ROUTE_53",),
            "zone_type": ("DNSOP_AWS_ZONE_TYPE",),
        })


class GCPConfig(BaseModel):
    """Configuration for the Cloud DNS backend.

    Managed zones live in one project. Credentials come from an explicit
    credentials object, a service account key file, or Application Default
    Credentials, in that order.
    """

    model_config = ConfigDict(extra="forbid")

    project_id: str | None = Field(default=None, description="Project owning the managed zones")
    credentials: Any | None = Field(default=None, description="google.auth credentials object")
    credentials_path: str | None = Field(
        default=None, description="Key file used when no credentials object is given"
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to the standard Google Cloud environment variables."""
        return _fill_from_env(values, {
            "project_id": ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT"),
            "credentials_path": ("GOOGLE_APPLICATION_CREDENTIALS",),
        })

    @model_validator(mode="after")
    def load_credentials(self) -> GCPConfig:
        """Require a project and load the key file when no credentials were passed."""
        if self.project_id is None:
            raise ValueError(
                "GCP project_id is required. Set it explicitly or via "
                "GOOGLE_CLOUD_PROJECT / GCLOUD_PROJECT environment variable."
            )
        if self.credentials is None and self.credentials_path:
            path = Path(self.credentials_path)
            if not path.exists():
                raise ValueError(f"Credentials file not found: {self.credentials_path}")
            from google.oauth2 import service_account  # lazy import

            self.credentials = service_account.Credentials.from_service_account_file(
                str(path)
            )
        return self


class InMemoryConfig(BaseModel):
    """Configuration for the in-memory backend.

    Zones are initialised empty for every listed domain; the zone ID is
    the domain name itself.
    """

    model_config = ConfigDict(extra="forbid")

    zones: list[str] = Field(default_factory=list, description="Domains to create zones for")

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to DNSOP_INMEMORY_ZONES (comma separated)."""
        if not values.get("zones"):
            raw = os.environ.get("DNSOP_INMEMORY_ZONES", "")
            values["zones"] = [z.strip() for z in raw.split(",") if z.strip()]
        return values


class ControllerConfig(BaseModel):
    """Runtime settings of the reconciliation driver.

    Every field falls back to a ``DNSOP_<FIELD>`` environment variable
    (e.g. ``DNSOP_RESYNC_INTERVAL``) when not passed explicitly.
    """

    model_config = ConfigDict(extra="forbid")

    resync_interval: float = Field(default=300.0, gt=0, description="Seconds between full resyncs")
    provider_timeout: float = Field(default=30.0, gt=0, description="Timeout of one provider call")
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    txt_prefix: str = Field(default="dnsop-", description="Prefix of ownership TXT records")
    workers: int = Field(default=4, ge=1, description="Concurrent reconcile workers")
    log_level: str = Field(default="INFO")

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to DNSOP_* environment variables for missing settings."""
        for field in cls.model_fields:
            if values.get(field) is None:
                env_value = os.environ.get(f"DNSOP_{field.upper()}")
                if env_value is not None:
                    values[field] = env_value
        return values


# Provider type -> config model, used when a descriptor is resolved
CONFIG_REGISTRY: dict[str, type[BaseModel]] = {
    "aws": AWSConfig,
    "gcp": GCPConfig,
    "inmemory": InMemoryConfig,
}


def validate_config(provider_type: str, config: dict) -> BaseModel:
    """Validate a descriptor's ``config`` against its provider's model.

    Raises:
        ValueError: If no model is registered for *provider_type*.
        pydantic.ValidationError: If the config is invalid.
    """
    model = CONFIG_REGISTRY.get(provider_type)
    if model is None:
        raise ValueError(f"No config model registered for provider: {provider_type}")
    return model(**config)


__all__ = [
    "AWSConfig",
    "GCPConfig",
    "InMemoryConfig",
    "ControllerConfig",
    "CONFIG_REGISTRY",
    "validate_config",
]
