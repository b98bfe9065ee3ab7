"""Tests for the endpoint generation engine."""

import pytest

from dnsop.base.exceptions import (
    EmptyHostnameError,
    MissingObjectLabelsError,
    RoutingValidationError,
    UnknownRoutingStrategyError,
)
from dnsop.generator import LABEL_GEO_CODE, generate_endpoints, short_code
from dnsop.model.endpoint import Endpoint
from dnsop.model.routing import CustomWeight, LoadBalancing, Routing, new_routing
from dnsop.model.selector import LabelSelector

IP_ONE = "127.0.0.1"
IP_TWO = "127.0.0.2"
TEST_HOSTNAME = "pat.the.cat"
DOMAIN = "example.com"
HOST_ONE = f"test.{DOMAIN}"
HOST_WILDCARD = f"*.{DOMAIN}"
CLUSTER_ID = "fbf71c44-6b37-4962-ace6-801912e769be"
DEFAULT_GEO = "IE"
TARGET = ("TestNamespace", "TestName")
CLUSTER_PREFIX = f"{short_code(CLUSTER_ID)}-{short_code('TestName-TestNamespace')}"


def _ips():
    return {IP_ONE: "IPAddress", IP_TWO: "IPAddress"}


def _lb(default_geo=DEFAULT_GEO, weight=120):
    return LoadBalancing(cluster_id=CLUSTER_ID, default_geo_code=default_geo, default_weight=weight)


def _shape(endpoints):
    return [
        (ep.dns_name, ep.record_type, ep.set_identifier, ep.targets, ep.record_ttl,
         ep.provider_specific)
        for ep in endpoints
    ]


def _traverse(endpoints, start):
    """Follow CNAMEs from *start*; return every terminal target reached."""
    by_name = {}
    for ep in endpoints:
        by_name.setdefault(ep.dns_name, []).append(ep)
    found, stack = set(), [start]
    while stack:
        name = stack.pop()
        for ep in by_name.get(name, []):
            if ep.record_type == "A":
                found.update(ep.targets)
            else:
                for t in ep.targets:
                    if t in by_name:
                        stack.append(t)
                    else:
                        found.add(t)
    return found


# --- simple routing ---

class TestSimpleRouting:
    def test_ip_addresses(self):
        eps = generate_endpoints(TARGET, None, HOST_ONE, new_routing(_ips()))
        assert _shape(eps) == [(HOST_ONE, "A", "", (IP_ONE, IP_TWO), 60, {})]

    def test_wildcard(self):
        eps = generate_endpoints(TARGET, None, HOST_WILDCARD, new_routing(_ips()))
        assert _shape(eps) == [(HOST_WILDCARD, "A", "", (IP_ONE, IP_TWO), 60, {})]

    def test_hostname_address(self):
        routing = new_routing({TEST_HOSTNAME: "Hostname"})
        eps = generate_endpoints(TARGET, None, HOST_ONE, routing)
        assert _shape(eps) == [(HOST_ONE, "CNAME", "", (TEST_HOSTNAME,), 60, {})]

    def test_mixed_addresses(self):
        routing = new_routing({IP_ONE: "IPAddress", TEST_HOSTNAME: "Hostname"})
        eps = generate_endpoints(TARGET, None, HOST_ONE, routing)
        assert [ep.record_type for ep in eps] == ["A", "CNAME"]

    def test_empty_addresses(self):
        assert generate_endpoints(TARGET, None, HOST_ONE, new_routing({})) == []

    def test_deterministic(self):
        a = generate_endpoints(TARGET, None, HOST_ONE, new_routing(_ips()))
        b = generate_endpoints(TARGET, None, HOST_ONE, new_routing(dict(reversed(_ips().items()))))
        assert a == b


# --- load-balanced routing ---

class TestLoadBalancedRouting:
    def test_matching_geo(self):
        eps = generate_endpoints(
            TARGET, {LABEL_GEO_CODE: DEFAULT_GEO}, HOST_ONE, new_routing(_ips(), _lb())
        )
        cluster = f"{CLUSTER_PREFIX}.klb.test.{DOMAIN}"
        assert sorted(_shape(eps)) == sorted([
            (cluster, "A", "", (IP_ONE, IP_TWO), 60, {}),
            (f"ie.klb.test.{DOMAIN}", "CNAME", cluster, (cluster,), 60, {"weight": "120"}),
            (f"klb.test.{DOMAIN}", "CNAME", DEFAULT_GEO, (f"ie.klb.test.{DOMAIN}",), 300,
             {"geo-code": DEFAULT_GEO}),
            (f"klb.test.{DOMAIN}", "CNAME", "default", (f"ie.klb.test.{DOMAIN}",), 300,
             {"geo-code": "*"}),
            (HOST_ONE, "CNAME", "", (f"klb.test.{DOMAIN}",), 300, {}),
        ])
        assert _traverse(eps, HOST_ONE) == {IP_ONE, IP_TWO}

    def test_matching_geo_wildcard(self):
        eps = generate_endpoints(
            TARGET, {LABEL_GEO_CODE: DEFAULT_GEO}, HOST_WILDCARD, new_routing(_ips(), _lb())
        )
        names = {ep.dns_name for ep in eps}
        assert names == {
            f"{CLUSTER_PREFIX}.klb.{DOMAIN}",
            f"ie.klb.{DOMAIN}",
            f"klb.{DOMAIN}",
            HOST_WILDCARD,
        }
        assert _traverse(eps, HOST_WILDCARD) == {IP_ONE, IP_TWO}

    def test_non_matching_geo(self):
        eps = generate_endpoints(
            TARGET, {LABEL_GEO_CODE: "CAD"}, HOST_ONE, new_routing(_ips(), _lb())
        )
        lb = [ep for ep in eps if ep.dns_name == f"klb.test.{DOMAIN}"]
        assert len(lb) == 1
        assert lb[0].set_identifier == "CAD"
        assert lb[0].targets == (f"cad.klb.test.{DOMAIN}",)
        assert lb[0].provider_specific == {"geo-code": "CAD"}
        assert len(eps) == 4

    def test_custom_weight(self):
        selector = LabelSelector(match_labels={"kuadrant.io/my-custom-weight-attr": "FOO"})
        routing = new_routing(_ips(), _lb(), [CustomWeight(weight=100, selector=selector)])
        labels = {LABEL_GEO_CODE: DEFAULT_GEO, "kuadrant.io/my-custom-weight-attr": "FOO"}
        eps = generate_endpoints(TARGET, labels, HOST_ONE, routing)
        weighted = [ep for ep in eps if "weight" in ep.provider_specific]
        assert [ep.provider_specific["weight"] for ep in weighted] == ["100"]

    def test_missing_geo_label_hostname_address(self):
        routing = new_routing({TEST_HOSTNAME: "Hostname"}, _lb())
        eps = generate_endpoints(TARGET, {}, HOST_ONE, routing)
        assert _shape(eps) == [
            (f"default.klb.test.{DOMAIN}", "CNAME", TEST_HOSTNAME, (TEST_HOSTNAME,), 60,
             {"weight": "120"}),
            (f"klb.test.{DOMAIN}", "CNAME", "default", (f"default.klb.test.{DOMAIN}",), 300, {}),
            (HOST_ONE, "CNAME", "", (f"klb.test.{DOMAIN}",), 300, {}),
        ]
        assert _traverse(eps, HOST_ONE) == {TEST_HOSTNAME}

    def test_sentinel_geo_is_default_geo(self):
        routing = new_routing({TEST_HOSTNAME: "Hostname"}, _lb(default_geo="default"))
        eps = generate_endpoints(TARGET, {}, HOST_ONE, routing)
        lb = [ep for ep in eps if ep.dns_name == f"klb.test.{DOMAIN}"]
        assert len(lb) == 1
        assert lb[0].provider_specific == {"geo-code": "*"}
        assert len({ep.key() for ep in eps}) == len(eps)

    def test_no_addresses(self):
        eps = generate_endpoints(TARGET, {}, HOST_ONE, new_routing({}, _lb()))
        assert eps == []

    def test_sorted_by_name_and_set_identifier(self):
        eps = generate_endpoints(
            TARGET, {LABEL_GEO_CODE: DEFAULT_GEO}, HOST_ONE, new_routing(_ips(), _lb())
        )
        assert eps == sorted(eps, key=Endpoint.sort_key)

    def test_cluster_name_differs_per_target(self):
        routing = new_routing(_ips(), _lb())
        a = generate_endpoints(("ns", "a"), {}, HOST_ONE, routing)
        b = generate_endpoints(("ns", "b"), {}, HOST_ONE, routing)
        assert {ep.dns_name for ep in a if ep.record_type == "A"} != {
            ep.dns_name for ep in b if ep.record_type == "A"
        }


# --- failures ---

class TestGenerateFailures:
    def _routing(self):
        selector = LabelSelector(match_labels={"kuadrant.io/my-custom-weight-attr": "FOO"})
        return new_routing(_ips(), _lb(), [CustomWeight(weight=100, selector=selector)])

    def test_unknown_strategy(self):
        routing = Routing(
            addresses=self._routing().addresses, strategy="cat", cluster_id=CLUSTER_ID,
            default_geo_code=DEFAULT_GEO, default_weight=120,
        )
        with pytest.raises(UnknownRoutingStrategyError, match="unknown routing strategy"):
            generate_endpoints(TARGET, {}, HOST_ONE, routing)

    def test_empty_hostname(self):
        with pytest.raises(EmptyHostnameError, match="listener hostname is empty"):
            generate_endpoints(TARGET, {}, "", self._routing())

    def test_missing_labels(self):
        with pytest.raises(MissingObjectLabelsError, match="object labels required"):
            generate_endpoints(TARGET, None, HOST_ONE, self._routing())

    @pytest.mark.parametrize(
        "field,value,message",
        [
            ("addresses", None, "must provide addresses"),
            ("cluster_id", "", "cluster ID is required"),
            ("default_weight", 0, "default weight is required"),
            ("default_geo_code", "", "default geocode is required"),
            ("custom_weights", (CustomWeight(weight=0),), "custom weight cannot be zero"),
            ("custom_weights", (CustomWeight(weight=10),),
             "custom weight must define non-empty selector"),
        ],
    )
    def test_invalid_routing(self, field, value, message):
        base = self._routing()
        routing = Routing(**{
            "addresses": base.addresses,
            "strategy": base.strategy,
            "cluster_id": base.cluster_id,
            "default_geo_code": base.default_geo_code,
            "default_weight": base.default_weight,
            "custom_weights": base.custom_weights,
            field: value,
        })
        with pytest.raises(RoutingValidationError, match=message):
            generate_endpoints(TARGET, {}, HOST_ONE, routing)
