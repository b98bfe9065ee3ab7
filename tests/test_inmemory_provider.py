"""Tests for the in-memory provider."""

import pytest

from dnsop.base.config import InMemoryConfig
from dnsop.base.exceptions import (
    RecordAlreadyExistsError,
    RecordNotFoundError,
    ZoneNotFoundError,
)
from dnsop.inmemory import InMemoryProvider
from dnsop.model.endpoint import Changes, Endpoint


@pytest.fixture
def provider():
    return InMemoryProvider(InMemoryConfig(zones=["Example.com.", "sub.example.com"]))


def _a(name="app.example.com", targets=("10.0.0.1",), sid=""):
    return Endpoint(
        dns_name=name, targets=targets, record_type="A", set_identifier=sid, record_ttl=60
    )


# --- list_zones ---

class TestListZones:
    def test_zones_normalized(self, provider):
        zones = provider.list_zones()
        assert [(z.id, z.domain_name) for z in zones] == [
            ("example.com", "example.com"),
            ("sub.example.com", "sub.example.com"),
        ]

    def test_no_zones(self, monkeypatch):
        monkeypatch.delenv("DNSOP_INMEMORY_ZONES", raising=False)
        assert InMemoryProvider(InMemoryConfig()).list_zones() == []


# --- list_records ---

class TestListRecords:
    def test_empty(self, provider):
        assert provider.list_records("example.com") == []

    def test_sorted(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a("b.example.com"), _a()]))
        names = [ep.dns_name for ep in provider.list_records("example.com")]
        assert names == ["app.example.com", "b.example.com"]

    def test_missing_zone(self, provider):
        with pytest.raises(ZoneNotFoundError):
            provider.list_records("nope.com")


# --- apply_changes ---

class TestApplyChanges:
    def test_create_strips_labels(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a().with_owners({"w1"})]))
        assert provider.list_records("example.com")[0].labels == {}

    def test_update(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        provider.apply_changes(
            "example.com",
            Changes(update_old=[_a()], update_new=[_a(targets=("10.0.0.2",))]),
        )
        assert provider.list_records("example.com")[0].targets == ("10.0.0.2",)

    def test_delete(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        provider.apply_changes("example.com", Changes(delete=[_a()]))
        assert provider.list_records("example.com") == []

    def test_create_duplicate(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        with pytest.raises(RecordAlreadyExistsError):
            provider.apply_changes("example.com", Changes(create=[_a(targets=("10.0.0.9",))]))

    def test_set_identifiers_are_distinct(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a(sid="one"), _a(sid="two")]))
        assert len(provider.list_records("example.com")) == 2

    def test_delete_missing(self, provider):
        with pytest.raises(RecordNotFoundError):
            provider.apply_changes("example.com", Changes(delete=[_a()]))

    def test_delete_stale_data(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        with pytest.raises(RecordNotFoundError):
            provider.apply_changes("example.com", Changes(delete=[_a(targets=("10.0.0.9",))]))

    def test_all_or_nothing(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        with pytest.raises(RecordAlreadyExistsError):
            provider.apply_changes(
                "example.com", Changes(create=[_a("new.example.com"), _a()])
            )
        assert [ep.dns_name for ep in provider.list_records("example.com")] == ["app.example.com"]

    def test_replace_in_one_change(self, provider):
        provider.apply_changes("example.com", Changes(create=[_a()]))
        provider.apply_changes(
            "example.com", Changes(delete=[_a()], create=[_a(targets=("10.0.0.2",))])
        )
        assert provider.list_records("example.com")[0].targets == ("10.0.0.2",)

    def test_missing_zone(self, provider):
        with pytest.raises(ZoneNotFoundError):
            provider.apply_changes("nope.com", Changes(create=[_a()]))
