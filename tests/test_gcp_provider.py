"""Tests for the GCP Cloud DNS provider."""

from types import SimpleNamespace
from unittest.mock import patch, MagicMock
import pytest

from google.api_core import exceptions as gcp_exceptions

from dnsop.base.config import GCPConfig
from dnsop.base.exceptions import (
    DNSProviderError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    TransientProviderError,
    UnsupportedRecordError,
    ZoneNotFoundError,
)
from dnsop.gcp import CloudDNSProvider
from dnsop.model.endpoint import Changes, Endpoint


@pytest.fixture
def svc():
    with patch("dnsop.gcp.provider.cloud_dns.Client") as MockClient:
        mock_client = MockClient.return_value
        instance = CloudDNSProvider(GCPConfig(project_id="my-project", credentials=MagicMock()))
        yield instance, mock_client


def _rrset(name, record_type, ttl, rrdatas):
    return SimpleNamespace(name=name, record_type=record_type, ttl=ttl, rrdatas=rrdatas)


def _ep(name="app.example.com", targets=("10.0.0.1",), rtype="A", sid=""):
    return Endpoint(
        dns_name=name, targets=targets, record_type=rtype, set_identifier=sid, record_ttl=60
    )


# --- list_zones ---

class TestListZones:
    def test_success(self, svc):
        inst, client = svc
        client.list_zones.return_value = [
            SimpleNamespace(name="example-com", dns_name="example.com."),
        ]
        zones = inst.list_zones()
        assert [(z.id, z.domain_name) for z in zones] == [("example-com", "example.com")]

    def test_transient(self, svc):
        inst, client = svc
        client.list_zones.side_effect = gcp_exceptions.ServiceUnavailable("down")
        with pytest.raises(TransientProviderError):
            inst.list_zones()

    def test_generic_error(self, svc):
        inst, client = svc
        client.list_zones.side_effect = gcp_exceptions.Forbidden("denied")
        with pytest.raises(DNSProviderError):
            inst.list_zones()


# --- list_records ---

class TestListRecords:
    def test_success(self, svc):
        inst, client = svc
        mock_zone = MagicMock()
        mock_zone.list_resource_record_sets.return_value = [
            _rrset("app.example.com.", "A", 60, ["10.0.0.1"]),
            _rrset("www.example.com.", "CNAME", 300, ["app.example.com."]),
            _rrset("txt.example.com.", "TXT", 300, ['"owner=x"']),
        ]
        client.zone.return_value = mock_zone
        a, cname, txt = inst.list_records("example-com")
        client.zone.assert_called_once_with("example-com")
        assert (a.dns_name, a.targets, a.record_ttl) == ("app.example.com", ("10.0.0.1",), 60)
        assert cname.targets == ("app.example.com",)
        assert txt.targets == ("owner=x",)

    def test_not_found(self, svc):
        inst, client = svc
        mock_zone = MagicMock()
        mock_zone.list_resource_record_sets.side_effect = gcp_exceptions.NotFound("gone")
        client.zone.return_value = mock_zone
        with pytest.raises(ZoneNotFoundError):
            inst.list_records("missing")


# --- apply_changes ---

class TestApplyChanges:
    def test_success(self, svc):
        inst, client = svc
        mock_zone = MagicMock()
        client.zone.return_value = mock_zone
        mock_change = mock_zone.changes.return_value

        inst.apply_changes("example-com", Changes(
            create=[_ep("www.example.com", ("app.example.com",), "CNAME")],
            update_old=[_ep()],
            update_new=[_ep(targets=("10.0.0.2",))],
            delete=[_ep("txt.example.com", ("owner=x",), "TXT")],
        ))

        record_set_calls = [c.args for c in mock_zone.resource_record_set.call_args_list]
        assert record_set_calls == [
            ("txt.example.com.", "TXT", 60, ['"owner=x"']),
            ("app.example.com.", "A", 60, ["10.0.0.1"]),
            ("www.example.com.", "CNAME", 60, ["app.example.com."]),
            ("app.example.com.", "A", 60, ["10.0.0.2"]),
        ]
        assert mock_change.delete_record_set.call_count == 2
        assert mock_change.add_record_set.call_count == 2
        mock_change.create.assert_called_once()

    def test_nothing_to_do(self, svc):
        inst, client = svc
        inst.apply_changes("example-com", Changes())
        client.zone.assert_not_called()

    def test_set_identifier_rejected(self, svc):
        inst, client = svc
        with pytest.raises(UnsupportedRecordError, match="set identifier 'IE'"):
            inst.apply_changes(
                "example-com",
                Changes(create=[_ep("klb.example.com", ("ie.klb.example.com",), "CNAME", "IE")]),
            )
        client.zone.assert_not_called()

    @pytest.mark.parametrize(
        "error,exc",
        [
            (gcp_exceptions.NotFound("gone"), ZoneNotFoundError),
            (gcp_exceptions.Conflict("exists"), RecordAlreadyExistsError),
            (gcp_exceptions.PreconditionFailed("stale"), RecordNotFoundError),
            (gcp_exceptions.TooManyRequests("slow down"), TransientProviderError),
            (gcp_exceptions.BadRequest("bad"), DNSProviderError),
        ],
    )
    def test_errors(self, svc, error, exc):
        inst, client = svc
        mock_zone = MagicMock()
        mock_zone.changes.return_value.create.side_effect = error
        client.zone.return_value = mock_zone
        with pytest.raises(exc):
            inst.apply_changes("example-com", Changes(create=[_ep()]))
