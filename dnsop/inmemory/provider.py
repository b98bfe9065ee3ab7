"""In-memory implementation of the provider blueprint.

Zone IDs are the zone domain names. Used for local runs and tests; every
record resource resolving the same descriptor config shares one instance
through the provider cache.
"""

from __future__ import annotations

import threading

from dnsop.base.config import InMemoryConfig
from dnsop.base.exceptions import (
    RecordAlreadyExistsError,
    RecordNotFoundError,
    ZoneNotFoundError,
)
from dnsop.base.provider import ProviderBlueprint
from dnsop.model.endpoint import Changes, Endpoint, Zone, normalize_name

RecordKey = tuple[str, str, str]


class InMemoryProvider(ProviderBlueprint):
    """Thread-safe zone store held in process memory.

    Attributes:
        zones: Zone ID to records keyed by ``(dns_name, type, set_identifier)``.
    """

    def __init__(self, config: InMemoryConfig) -> None:
        self._lock = threading.Lock()
        self.zones: dict[str, dict[RecordKey, Endpoint]] = {
            normalize_name(domain): {} for domain in config.zones
        }

    def _zone(self, zone_id: str) -> dict[RecordKey, Endpoint]:
        try:
            return self.zones[zone_id]
        except KeyError:
            raise ZoneNotFoundError(f"Zone '{zone_id}' not found") from None

    # --- Zone catalog ---

    def list_zones(self) -> list[Zone]:
        with self._lock:
            return [Zone(id=zid, domain_name=zid) for zid in sorted(self.zones)]

    # --- Record management ---

    def list_records(self, zone_id: str) -> list[Endpoint]:
        with self._lock:
            zone = self._zone(zone_id)
            return sorted(zone.values(), key=Endpoint.sort_key)

    def apply_changes(self, zone_id: str, changes: Changes) -> None:
        """Validate the whole change set, then apply it.

        Raises:
            ZoneNotFoundError: If the zone does not exist.
            RecordAlreadyExistsError: A created key already exists.
            RecordNotFoundError: An updated or deleted record is missing or
                differs from the stored one.
        """
        with self._lock:
            zone = self._zone(zone_id)
            self._validate(zone_id, zone, changes)
            for ep in changes.delete + changes.update_old:
                del zone[ep.key()]
            for ep in changes.create + changes.update_new:
                zone[ep.key()] = ep.without_labels()

    @staticmethod
    def _validate(zone_id: str, zone: dict[RecordKey, Endpoint], changes: Changes) -> None:
        removed: set[RecordKey] = set()
        for ep in changes.delete + changes.update_old:
            stored = zone.get(ep.key())
            if stored is None or ep.key() in removed or not stored.same_shape(ep):
                raise RecordNotFoundError(
                    f"Record '{ep.dns_name}' ({ep.record_type}) not found in zone '{zone_id}'"
                )
            removed.add(ep.key())
        added: set[RecordKey] = set()
        for ep in changes.create + changes.update_new:
            if (ep.key() in zone and ep.key() not in removed) or ep.key() in added:
                raise RecordAlreadyExistsError(
                    f"Record '{ep.dns_name}' ({ep.record_type}) already exists in zone '{zone_id}'"
                )
            added.add(ep.key())
