"""
Conflict arbitration between writers sharing a zone.

:func:`plan_changes` compares one writer's desired endpoints with the
owner-labelled zone snapshot (see :mod:`dnsop.registry`) and produces the
minimal change set that writer may apply:

* keys nobody has yet are created and claimed;
* keys only this writer owns are updated in place;
* keys other writers own with the same data are joined (claim only);
* keys other writers own (or nobody claims) with different data are
  conflicts, and the whole plan is held back until they go away;
* keys this writer owns under its root hosts but no longer wants are
  deleted, or released when shared.

Type conflicts and dangling targets are hard errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from dnsop.base.exceptions import InvalidTargetError, RecordTypeConflictError
from dnsop.model.endpoint import CNAME_RECORD, Changes, Endpoint, normalize_name


@dataclass(frozen=True)
class Conflict:
    """A desired record that cannot be written over the existing one."""

    desired: Endpoint
    existing: Endpoint

    def __str__(self) -> str:
        owners = ", ".join(sorted(self.existing.owners())) or "<unowned>"
        return f"{self.desired.dns_name} [{self.desired.set_identifier}] owned by {owners}"


@dataclass
class Plan:
    changes: Changes = field(default_factory=Changes)
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def awaiting_validation(self) -> bool:
        return bool(self.conflicts)


def _in_root_hosts(name: str, root_hosts: list[str]) -> bool:
    for host in root_hosts:
        host = normalize_name(host).removeprefix("*.")
        if name == host or name.endswith("." + host):
            return True
    return False


def _types_clash(a: str, b: str) -> bool:
    # CNAME cannot coexist with any other type at the same name.
    return a != b and CNAME_RECORD in (a, b)


def check_type_conflicts(
    owner_id: str, desired: Iterable[Endpoint], current: Iterable[Endpoint]
) -> None:
    """Raise if a desired name already holds a clashing type another writer owns.

    Raises:
        RecordTypeConflictError: On the first clash found.
    """
    by_name: dict[str, list[Endpoint]] = {}
    for rec in current:
        by_name.setdefault(rec.dns_name, []).append(rec)
    for want in desired:
        for have in by_name.get(want.dns_name, []):
            if not _types_clash(want.record_type, have.record_type):
                continue
            if have.owners() - {owner_id} or not have.owners():
                raise RecordTypeConflictError(
                    want.dns_name, want.record_type, have.record_type
                )


def check_dangling_targets(
    owner_id: str,
    desired: list[Endpoint],
    current: Iterable[Endpoint],
    root_hosts: list[str],
) -> None:
    """Raise if a CNAME points inside a root host at a name nobody defines.

    Defined names are this writer's desired names plus every current name
    that is not solely owned by this writer.

    Raises:
        InvalidTargetError: On the first dangling target found.
    """
    defined = {ep.dns_name for ep in desired}
    defined |= {rec.dns_name for rec in current if rec.owners() != {owner_id}}
    for want in desired:
        if want.record_type != CNAME_RECORD:
            continue
        for target in want.targets:
            if _in_root_hosts(target, root_hosts) and target not in defined:
                raise InvalidTargetError(want.dns_name, target, list(root_hosts))


def plan_changes(
    owner_id: str,
    desired: Iterable[Endpoint],
    current: Iterable[Endpoint],
    root_hosts: Iterable[str] = (),
) -> Plan:
    """Work out what *owner_id* may change in the zone.

    Args:
        owner_id: Identity of the writer planning the change.
        desired: Endpoints the writer wants published.
        current: Zone snapshot, every record labelled with its owners.
        root_hosts: Root hosts the writer manages. CNAME targets under them
            must resolve to a defined name, and only records under them are
            deleted or released. Empty means the whole zone.

    Returns:
        A :class:`Plan`. When it has conflicts its change set is empty.

    Raises:
        RecordTypeConflictError: A desired name holds a clashing record
            type owned by another writer or by nobody.
        InvalidTargetError: A desired CNAME target is dangling.
    """
    desired = sorted({ep.key(): ep for ep in desired}.values(), key=Endpoint.sort_key)
    current = sorted(current, key=Endpoint.sort_key)
    root_hosts = list(root_hosts)

    check_type_conflicts(owner_id, desired, current)
    check_dangling_targets(owner_id, desired, current, root_hosts)

    existing = {rec.key(): rec for rec in current}
    plan = Plan()
    changes = plan.changes

    for want in desired:
        have = existing.get(want.key())
        if have is None:
            changes.create.append(want.with_owners({owner_id}))
            continue
        owners = have.owners()
        if owners == {owner_id}:
            if not have.same_shape(want):
                changes.update_old.append(have)
                changes.update_new.append(want.with_owners(owners))
        elif have.same_shape(want):
            # Unowned records with identical data are left alone.
            if owners and owner_id not in owners:
                changes.update_old.append(have)
                changes.update_new.append(have.with_owners(owners | {owner_id}))
        else:
            plan.conflicts.append(Conflict(desired=want, existing=have))

    wanted = {ep.key() for ep in desired}
    for have in current:
        owners = have.owners()
        if owner_id not in owners or have.key() in wanted:
            continue
        if root_hosts and not _in_root_hosts(have.dns_name, root_hosts):
            continue
        if owners == {owner_id}:
            changes.delete.append(have)
        else:
            changes.update_old.append(have)
            changes.update_new.append(have.with_owners(owners - {owner_id}))

    if plan.conflicts:
        return Plan(conflicts=plan.conflicts)
    return plan
