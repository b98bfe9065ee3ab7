"""
TXT ownership registry.

Ownership of each record is persisted in the zone itself, so every writer
sees every other writer's claims in the same snapshot. A writer keeps one
TXT record set per ``(owner, type, dns name)``::

    dnsop-<owner>-<type>.<dns name>  TXT  "heritage=dnsop,owner=<owner>,name=<dns name>,type=<type>,set-identifier=<id>"

with one value per owned set identifier. ``*.`` wildcard names become
``dnsop-<owner>-<type>-wildcard.<parent>``.

A registry instance holds the ownership records of the last
:meth:`TXTRegistry.records` call; :meth:`TXTRegistry.apply_changes` diffs
against them, so both must be called within the same serialized pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dnsop.base.provider import ProviderBlueprint
from dnsop.model.endpoint import TXT_RECORD, Changes, Endpoint, normalize_name

logger = logging.getLogger("dnsop")

HERITAGE = "dnsop"
DEFAULT_PREFIX = "dnsop-"
OWNERSHIP_TTL = 300


@dataclass(frozen=True)
class OwnershipClaim:
    """One writer's claim on one record key."""

    owner: str
    dns_name: str
    record_type: str
    set_identifier: str = ""

    @property
    def record_key(self) -> tuple[str, str, str]:
        return (self.dns_name, self.record_type, self.set_identifier)

    def to_text(self) -> str:
        return (
            f"heritage={HERITAGE},owner={self.owner},name={self.dns_name},"
            f"type={self.record_type},set-identifier={self.set_identifier}"
        )

    @classmethod
    def from_text(cls, text: str) -> OwnershipClaim | None:
        """Parse a TXT value; ``None`` if it is not one of ours."""
        parts: dict[str, str] = {}
        for part in text.strip().strip('"').split(","):
            if "=" in part:
                key, value = part.split("=", 1)
                parts[key.strip()] = value.strip()
        if parts.get("heritage") != HERITAGE:
            return None
        if not parts.get("owner") or not parts.get("name") or not parts.get("type"):
            return None
        return cls(
            owner=parts["owner"],
            dns_name=parts["name"],
            record_type=parts["type"].upper(),
            set_identifier=parts.get("set-identifier", ""),
        )


class TXTRegistry:
    """Reads owner-labelled snapshots and writes owner-aware change sets.

    Attributes:
        provider: Backend the zone lives in.
        prefix: Leading label prefix of ownership record names.
    """

    def __init__(self, provider: ProviderBlueprint, prefix: str = DEFAULT_PREFIX) -> None:
        self.provider = provider
        self.prefix = prefix
        # zone_id -> ownership record name -> ownership record
        self._ownership: dict[str, dict[str, Endpoint]] = {}

    def ownership_name(self, owner: str, record_type: str, dns_name: str) -> str:
        if dns_name.startswith("*."):
            name = f"{self.prefix}{owner}-{record_type}-wildcard.{dns_name[2:]}"
        else:
            name = f"{self.prefix}{owner}-{record_type}.{dns_name}"
        return normalize_name(name)

    def _ownership_record(
        self, owner: str, record_type: str, dns_name: str, set_identifiers: set[str]
    ) -> Endpoint:
        claims = [
            OwnershipClaim(owner, dns_name, record_type, sid).to_text()
            for sid in sorted(set_identifiers)
        ]
        return Endpoint(
            dns_name=self.ownership_name(owner, record_type, dns_name),
            targets=tuple(claims),
            record_type=TXT_RECORD,
            record_ttl=OWNERSHIP_TTL,
        )

    @staticmethod
    def _parse(record: Endpoint) -> list[OwnershipClaim] | None:
        if record.record_type != TXT_RECORD or not record.targets:
            return None
        claims = [OwnershipClaim.from_text(t) for t in record.targets]
        if any(c is None for c in claims):
            return None
        return claims  # type: ignore[return-value]

    def records(self, zone_id: str) -> list[Endpoint]:
        """Return the zone's records, each labelled with its owners.

        Ownership records themselves are not returned. Records nobody
        claims come back without an ``owner`` label.
        """
        owners: dict[tuple[str, str, str], set[str]] = {}
        ownership: dict[str, Endpoint] = {}
        plain: list[Endpoint] = []
        for record in self.provider.list_records(zone_id):
            claims = self._parse(record)
            if claims is None:
                plain.append(record)
                continue
            ownership[record.dns_name] = record
            for claim in claims:
                owners.setdefault(claim.record_key, set()).add(claim.owner)
        self._ownership[zone_id] = ownership
        return sorted(
            (r.with_owners(owners.get(r.key(), ())) for r in plain),
            key=Endpoint.sort_key,
        )

    def apply_changes(self, zone_id: str, owner: str, changes: Changes) -> Changes:
        """Submit owner-labelled *changes* as one provider change.

        Record data is written only where it actually changes; ownership
        is updated where *owner* gains or loses a claim.

        Returns:
            The change set sent to the provider (empty if nothing to do).
        """
        record_changes = Changes()
        gained: set[tuple[str, str, str]] = set()
        lost: set[tuple[str, str, str]] = set()

        for ep in changes.create:
            record_changes.create.append(ep.without_labels())
            gained.add(ep.key())
        for old, new in zip(changes.update_old, changes.update_new):
            if not old.same_shape(new):
                record_changes.update_old.append(old.without_labels())
                record_changes.update_new.append(new.without_labels())
            if owner in new.owners() and owner not in old.owners():
                gained.add(new.key())
            elif owner in old.owners() and owner not in new.owners():
                lost.add(old.key())
        for ep in changes.delete:
            record_changes.delete.append(ep.without_labels())
            lost.add(ep.key())

        self._add_ownership_changes(zone_id, owner, gained, lost, record_changes)
        if not record_changes.has_changes():
            return record_changes

        logger.debug(
            "Applying %d create, %d update, %d delete to zone %s",
            len(record_changes.create),
            len(record_changes.update_new),
            len(record_changes.delete),
            zone_id,
        )
        self.provider.apply_changes(zone_id, record_changes)
        self._remember(zone_id, record_changes)
        return record_changes

    def _add_ownership_changes(
        self,
        zone_id: str,
        owner: str,
        gained: set[tuple[str, str, str]],
        lost: set[tuple[str, str, str]],
        out: Changes,
    ) -> None:
        known = self._ownership.get(zone_id, {})
        touched = sorted({(name, rtype) for name, rtype, _ in gained | lost})
        for dns_name, record_type in touched:
            name = self.ownership_name(owner, record_type, dns_name)
            existing = known.get(name)
            sids = set()
            if existing is not None:
                sids = {
                    c.set_identifier
                    for c in self._parse(existing) or []
                    if c.owner == owner and c.dns_name == dns_name
                }
            updated = set(sids)
            updated |= {sid for n, t, sid in gained if (n, t) == (dns_name, record_type)}
            updated -= {sid for n, t, sid in lost if (n, t) == (dns_name, record_type)}
            if updated == sids and existing is not None:
                continue
            if not updated:
                if existing is not None:
                    out.delete.append(existing)
                continue
            desired = self._ownership_record(owner, record_type, dns_name, updated)
            if existing is None:
                out.create.append(desired)
            else:
                out.update_old.append(existing)
                out.update_new.append(desired)

    def _remember(self, zone_id: str, applied: Changes) -> None:
        known = self._ownership.setdefault(zone_id, {})
        for ep in applied.delete:
            if self._parse(ep) is not None:
                known.pop(ep.dns_name, None)
        for ep in applied.create + applied.update_new:
            if self._parse(ep) is not None:
                known[ep.dns_name] = ep
