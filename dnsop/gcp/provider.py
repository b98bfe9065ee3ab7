"""GCP Cloud DNS implementation of the provider blueprint."""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import dns as cloud_dns  # type: ignore[attr-defined]

from dnsop.base.config import GCPConfig
from dnsop.base.exceptions import (
    DNSProviderError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    TransientProviderError,
    UnsupportedRecordError,
    ZoneNotFoundError,
)
from dnsop.base.provider import ProviderBlueprint
from dnsop.model.endpoint import CNAME_RECORD, TXT_RECORD, Changes, Endpoint, Zone

_TRANSIENT = (
    gcp_exceptions.TooManyRequests,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.BadGateway,
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.GatewayTimeout,
)


def _fqdn(name: str) -> str:
    return name if name.endswith(".") else name + "."


class CloudDNSProvider(ProviderBlueprint):
    """GCP Cloud DNS backend.

    Zone IDs are Cloud DNS managed-zone names. Routing policies are not
    supported: set-identified records are rejected.

    Attributes:
        client: Cloud DNS client.
        project_id: GCP project ID.
    """

    def __init__(self, config: GCPConfig) -> None:
        """Initialize the Cloud DNS client.

        Args:
            config: GCP configuration object containing project ID and credentials.
                   Expected attributes:
                   - project_id: GCP project ID
                   - credentials: Optional GCP credentials object
                   - credentials_path: Optional path to service account JSON key file
        """
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project_id: str = config.project_id
        self.client = cloud_dns.Client(project=self.project_id, credentials=config.credentials)

    # --- Zone catalog ---

    def list_zones(self) -> list[Zone]:
        """List all Cloud DNS managed zones.

        Raises:
            TransientProviderError: On throttling or server errors.
            DNSProviderError: On any other Cloud DNS API failure.
        """
        try:
            return [Zone(id=z.name, domain_name=z.dns_name) for z in self.client.list_zones()]
        except _TRANSIENT as e:
            raise TransientProviderError("Failed to list zones") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise DNSProviderError("Failed to list zones") from e

    # --- Record management ---

    def list_records(self, zone_id: str) -> list[Endpoint]:
        """List all record sets of a managed zone as endpoints.

        Raises:
            ZoneNotFoundError: If the zone does not exist.
        """
        try:
            zone = self.client.zone(zone_id)
            return [
                Endpoint(
                    dns_name=r.name,
                    targets=tuple(
                        t.strip('"') if r.record_type == TXT_RECORD else t for t in r.rrdatas
                    ),
                    record_type=r.record_type,
                    record_ttl=r.ttl or 0,
                )
                for r in zone.list_resource_record_sets()
            ]
        except gcp_exceptions.NotFound as e:
            raise ZoneNotFoundError(f"Zone '{zone_id}' not found") from e
        except _TRANSIENT as e:
            raise TransientProviderError(f"Failed to list records in '{zone_id}'") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise DNSProviderError(f"Failed to list records in '{zone_id}'") from e

    def apply_changes(self, zone_id: str, changes: Changes) -> None:
        """Submit every change as one Cloud DNS change (atomic).

        Raises:
            UnsupportedRecordError: A record carries a set identifier.
            ZoneNotFoundError: If the zone does not exist.
            RecordAlreadyExistsError: A created record set already exists.
            RecordNotFoundError: A deleted record set does not match.
        """
        for ep in changes.create + changes.update_new + changes.delete + changes.update_old:
            if ep.set_identifier:
                raise UnsupportedRecordError(
                    f"Cloud DNS cannot express record '{ep.dns_name}' with set "
                    f"identifier '{ep.set_identifier}'"
                )
        if not changes.has_changes():
            return
        try:
            zone = self.client.zone(zone_id)
            change = zone.changes()
            for ep in changes.delete + changes.update_old:
                change.delete_record_set(self._to_record_set(zone, ep))
            for ep in changes.create + changes.update_new:
                change.add_record_set(self._to_record_set(zone, ep))
            change.create()
        except gcp_exceptions.NotFound as e:
            raise ZoneNotFoundError(f"Zone '{zone_id}' not found") from e
        except gcp_exceptions.Conflict as e:
            raise RecordAlreadyExistsError(f"Record already exists in '{zone_id}'") from e
        except gcp_exceptions.PreconditionFailed as e:
            raise RecordNotFoundError(f"Record to change not found in '{zone_id}'") from e
        except _TRANSIENT as e:
            raise TransientProviderError(f"Failed to apply changes to '{zone_id}'") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise DNSProviderError(f"Failed to apply changes to '{zone_id}'") from e

    @staticmethod
    def _to_record_set(zone: Any, ep: Endpoint) -> Any:
        if ep.record_type == CNAME_RECORD:
            values = [_fqdn(t) for t in ep.targets]
        elif ep.record_type == TXT_RECORD:
            values = [f'"{t}"' for t in ep.targets]
        else:
            values = list(ep.targets)
        return zone.resource_record_set(_fqdn(ep.dns_name), ep.record_type, ep.record_ttl, values)
