"""Tests for zone assignment."""

import pytest

from dnsop.base.exceptions import NoSuitableZoneError, ZoneFilterMismatchError
from dnsop.model.endpoint import Zone
from dnsop.zones import (
    check_zone_compatible,
    matches_domain_filter,
    matches_id_filter,
    select_zone,
)

CATALOG = [
    Zone(id="Z-COM", domain_name="example.com."),
    Zone(id="Z-SUB", domain_name="sub.example.com"),
    Zone(id="Z-ORG", domain_name="example.org"),
]


class TestFilters:
    def test_empty_domain_filter_accepts_all(self):
        assert matches_domain_filter("anything.net", [])
        assert matches_domain_filter("anything.net", None)

    def test_domain_filter_suffix(self):
        assert matches_domain_filter("sub.example.com", ["example.com"])
        assert matches_domain_filter("example.com.", ["Example.com"])
        assert not matches_domain_filter("badexample.com", ["example.com"])

    def test_id_filter_exact(self):
        assert matches_id_filter("Z1", ["Z1", "Z2"])
        assert not matches_id_filter("Z10", ["Z1"])
        assert matches_id_filter("Z10", [])


class TestSelectZone:
    def test_longest_suffix_wins(self):
        assert select_zone("app.sub.example.com", CATALOG).id == "Z-SUB"

    def test_parent_zone(self):
        assert select_zone("app.example.com", CATALOG).id == "Z-COM"

    def test_case_and_trailing_dot(self):
        assert select_zone("App.Example.COM.", CATALOG).id == "Z-COM"

    def test_apex_is_not_a_candidate(self):
        assert select_zone("sub.example.com", CATALOG).id == "Z-COM"

    def test_label_boundary(self):
        with pytest.raises(NoSuitableZoneError):
            select_zone("app.badexample.com", CATALOG)

    def test_wildcard_host(self):
        assert select_zone("*.sub.example.com", CATALOG).id == "Z-SUB"

    def test_domain_filter(self):
        zone = select_zone("app.sub.example.com", CATALOG, domain_filter=["example.org", "example.com"])
        assert zone.id == "Z-SUB"

    def test_id_filter(self):
        assert select_zone("app.sub.example.com", CATALOG, id_filter=["Z-COM"]).id == "Z-COM"

    def test_tie_broken_by_lowest_id(self):
        catalog = [Zone(id="Z2", domain_name="example.com"), Zone(id="Z1", domain_name="example.com")]
        assert select_zone("app.example.com", catalog).id == "Z1"

    def test_no_zone(self):
        with pytest.raises(NoSuitableZoneError, match="no valid zone found for host: app.example.net"):
            select_zone("app.example.net", CATALOG)

    def test_filtered_out(self):
        with pytest.raises(NoSuitableZoneError):
            select_zone("app.example.com", CATALOG, domain_filter=["example.org"])


class TestCheckZoneCompatible:
    def test_compatible(self):
        zone = check_zone_compatible("Z-COM", "example.com", CATALOG, ["example.com"], [])
        assert zone.domain_name == "example.com"

    def test_domain_filter_mismatch(self):
        with pytest.raises(
            ZoneFilterMismatchError,
            match="zone domain name 'example.com' is not listed in the providers domain filter",
        ):
            check_zone_compatible("Z-COM", "example.com", CATALOG, ["example.org"], [])

    def test_id_filter_mismatch(self):
        with pytest.raises(ZoneFilterMismatchError, match="zone id 'Z-COM' is not listed"):
            check_zone_compatible("Z-COM", "example.com", CATALOG, [], ["Z-ORG"])

    def test_zone_gone(self):
        with pytest.raises(ZoneFilterMismatchError, match="is not listed by the provider"):
            check_zone_compatible("Z-OLD", "example.com", CATALOG)
