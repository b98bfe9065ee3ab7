"""The DNS record resource: spec, status and its admission rules."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dnsop.base.exceptions import EndpointValidationError, OwnerIDImmutableError
from dnsop.base.hashing import to_base36_hash_len
from dnsop.model.endpoint import Endpoint, normalize_name

FINALIZER = "dnsop.io/dns-record"
WILDCARD_PREFIX = "*."
OWNER_ID_LENGTH = 8

CONDITION_READY = "Ready"

REASON_PROVIDER_SUCCESS = "ProviderSuccess"
REASON_PROVIDER_ERROR = "ProviderError"
REASON_DNS_PROVIDER_ERROR = "DNSProviderError"
REASON_AWAITING_VALIDATION = "AwaitingValidation"

_ROOT_HOST_RE = re.compile(
    r"^(\*\.)?([a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?\.)+[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$"
)
_HEALTH_ENDPOINT_RE = re.compile(r"^/.*$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordPhase(str, Enum):
    PENDING = "Pending"
    AWAITING_VALIDATION = "AwaitingValidation"
    READY = "Ready"
    ERROR = "Error"
    TERMINATING = "Terminating"


class ObjectMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    namespace: str = "default"
    uid: str = ""
    generation: int = 0
    labels: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: datetime | None = Field(default=None, alias="deletionTimestamp")


class ProviderRef(BaseModel):
    name: str = Field(..., min_length=1)


class HealthCheckSpec(BaseModel):
    """Health-check settings attached to a record. Validated, not probed."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = "/"
    port: int | None = None
    protocol: str | None = None
    failure_threshold: int | None = Field(default=None, alias="failureThreshold")

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, v: str) -> str:
        if not _HEALTH_ENDPOINT_RE.match(v):
            raise ValueError(f"healthCheck.endpoint: Invalid value: '{v}': must start with '/'")
        return v

    @field_validator("port")
    @classmethod
    def _check_port(cls, v: int | None) -> int | None:
        if v is not None and v not in (80, 443) and not 1024 <= v <= 49151:
            raise ValueError("Only ports 80, 443, 1024-49151 are allowed")
        return v

    @field_validator("protocol")
    @classmethod
    def _check_protocol(cls, v: str | None) -> str | None:
        if v is not None and v not in ("HTTP", "HTTPS"):
            raise ValueError("Only HTTP or HTTPS protocols are allowed")
        return v

    @field_validator("failure_threshold")
    @classmethod
    def _check_threshold(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("Failure threshold must be greater than 0")
        return v


class DNSRecordSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str | None = Field(default=None, alias="ownerID")
    root_host: str = Field(..., alias="rootHost", min_length=1)
    provider_ref: ProviderRef = Field(..., alias="providerRef")
    endpoints: list[Endpoint] = Field(default_factory=list)
    health_check: HealthCheckSpec | None = Field(default=None, alias="healthCheck")

    @field_validator("root_host")
    @classmethod
    def _check_root_host(cls, v: str) -> str:
        host = normalize_name(v)
        if not _ROOT_HOST_RE.match(host):
            raise ValueError(f"rootHost: Invalid value: '{v}'")
        return host


class Condition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    status: bool
    reason: str
    message: str
    observed_generation: int = Field(default=0, alias="observedGeneration")
    last_transition_time: datetime = Field(default_factory=_utcnow, alias="lastTransitionTime")


class DNSRecordStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str | None = Field(default=None, alias="ownerID")
    write_counter: int = Field(default=0, alias="writeCounter", ge=0)
    zone_id: str | None = Field(default=None, alias="zoneID")
    zone_domain_name: str | None = Field(default=None, alias="zoneDomainName")
    root_host: str | None = Field(default=None, alias="rootHost")
    phase: RecordPhase = RecordPhase.PENDING
    observed_generation: int = Field(default=0, alias="observedGeneration")
    conditions: list[Condition] = Field(default_factory=list)

    def get_condition(self, condition_type: str) -> Condition | None:
        for cond in self.conditions:
            if cond.type == condition_type:
                return cond
        return None

    def set_condition(
        self,
        condition_type: str,
        status: bool,
        reason: str,
        message: str,
        observed_generation: int,
    ) -> None:
        """Insert or replace a condition, keeping its transition time if the
        status did not flip."""
        previous = self.get_condition(condition_type)
        transition = _utcnow()
        if previous is not None and previous.status == status:
            transition = previous.last_transition_time
        cond = Condition(
            type=condition_type,
            status=status,
            reason=reason,
            message=message,
            observed_generation=observed_generation,
            last_transition_time=transition,
        )
        self.conditions = [c for c in self.conditions if c.type != condition_type] + [cond]


class DNSRecord(BaseModel):
    """A record resource: the desired endpoints of one writer for a root host."""

    model_config = ConfigDict(populate_by_name=True)

    metadata: ObjectMeta
    spec: DNSRecordSpec
    status: DNSRecordStatus = Field(default_factory=DNSRecordStatus)

    @property
    def key(self) -> str:
        return f"{self.metadata.namespace}/{self.metadata.name}"

    def uid_hash(self) -> str:
        """Owner ID derived from the resource UID."""
        return to_base36_hash_len(self.metadata.uid, OWNER_ID_LENGTH)

    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def validate_endpoints(self) -> None:
        """Check the endpoint set against the root host.

        Raises:
            EndpointValidationError: If the root host has no TLD, there are
                no endpoints, an endpoint lies outside the root host, or no
                endpoint is defined for the root host itself.
        """
        root_host = self.spec.root_host
        if len(root_host.split(".")) <= 1:
            raise EndpointValidationError("invalid domain format no tld discovered")
        if not self.spec.endpoints:
            raise EndpointValidationError(
                "no endpoints defined for DNSRecord. Nothing to do."
            )
        root = root_host.removeprefix(WILDCARD_PREFIX)
        root_found = False
        for ep in self.spec.endpoints:
            if not ep.dns_name.endswith(root):
                raise EndpointValidationError(
                    f"invalid endpoint discovered {ep.dns_name} all endpoints should be "
                    f"equal to or end with the rootHost {root}"
                )
            if ep.dns_name == root_host:
                root_found = True
        if not root_found:
            raise EndpointValidationError(
                f"invalid domain format no endpoint defined for root host {root_host}"
            )


def validate_owner_id_update(old: DNSRecordSpec, new: DNSRecordSpec) -> None:
    """Reject any update that sets, changes or clears ``spec.ownerID``.

    Raises:
        OwnerIDImmutableError: On any such transition.
    """
    if not old.owner_id and new.owner_id:
        raise OwnerIDImmutableError("OwnerID can't be set if it was previously unset")
    if old.owner_id and not new.owner_id:
        raise OwnerIDImmutableError("OwnerID can't be unset if it was previously set")
    if (old.owner_id or None) != (new.owner_id or None):
        raise OwnerIDImmutableError("OwnerID is immutable")
