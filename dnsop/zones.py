"""Zone assignment: pick the provider zone that hosts a root host."""

from __future__ import annotations

from typing import Iterable

from dnsop.base.exceptions import NoSuitableZoneError, ZoneFilterMismatchError
from dnsop.model.endpoint import Zone, normalize_name


def matches_domain_filter(domain: str, domain_filter: Iterable[str] | None) -> bool:
    """True if *domain* equals or sits under one of the filter suffixes.

    An empty or missing filter accepts everything.
    """
    filters = [normalize_name(f) for f in domain_filter or [] if f]
    if not filters:
        return True
    domain = normalize_name(domain)
    return any(domain == f or domain.endswith("." + f) for f in filters)


def matches_id_filter(zone_id: str, id_filter: Iterable[str] | None) -> bool:
    ids = [i for i in id_filter or [] if i]
    return not ids or zone_id in ids


def select_zone(
    root_host: str,
    catalog: Iterable[Zone],
    domain_filter: Iterable[str] | None = None,
    id_filter: Iterable[str] | None = None,
) -> Zone:
    """Return the most specific zone that is a proper parent of *root_host*.

    A zone is a candidate when its domain name is a dot-boundary suffix of
    the host (but not the host itself) and it passes both filters. The
    longest domain wins; equal lengths are broken by the lowest zone ID.

    Raises:
        NoSuitableZoneError: If there is no candidate.
    """
    host = normalize_name(root_host)
    candidates = [
        zone
        for zone in catalog
        if host.endswith("." + zone.domain_name)
        and matches_domain_filter(zone.domain_name, domain_filter)
        and matches_id_filter(zone.id, id_filter)
    ]
    if not candidates:
        raise NoSuitableZoneError(f"no valid zone found for host: {root_host}")
    return min(candidates, key=lambda z: (-len(z.domain_name), z.id))


def check_zone_compatible(
    zone_id: str,
    zone_domain_name: str,
    catalog: Iterable[Zone],
    domain_filter: Iterable[str] | None = None,
    id_filter: Iterable[str] | None = None,
) -> Zone:
    """Confirm a previously assigned zone is still usable with the provider.

    Returns:
        The catalog entry for *zone_id*.

    Raises:
        ZoneFilterMismatchError: If the filters now exclude the zone or the
            provider no longer lists it.
    """
    if not matches_domain_filter(zone_domain_name, domain_filter):
        raise ZoneFilterMismatchError(
            f"zone domain name '{zone_domain_name}' is not listed in the providers domain filter"
        )
    if not matches_id_filter(zone_id, id_filter):
        raise ZoneFilterMismatchError(
            f"zone id '{zone_id}' is not listed in the providers zone id filter"
        )
    for zone in catalog:
        if zone.id == zone_id:
            return zone
    raise ZoneFilterMismatchError(f"zone '{zone_id}' is not listed by the provider")
