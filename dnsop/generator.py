"""
Endpoint generation: compile a routing description into DNS records.

Simple routing publishes the addresses directly at the hostname.
Load-balanced routing builds a three-tier chain shared by every writer of
the hostname::

    shop.example.com        CNAME                  klb.shop.example.com
    klb.shop.example.com    CNAME geo ie           ie.klb.shop.example.com
    klb.shop.example.com    CNAME geo * (default)  ie.klb.shop.example.com
    ie.klb.shop.example.com CNAME weight 120       ab12cd-ef34gh.klb.shop.example.com
    ie.klb.shop.example.com CNAME weight 120       lb.aws.example.net
    ab12cd-ef34gh.klb.shop.example.com  A          192.0.2.1 192.0.2.2

The output is fully deterministic: same inputs, same list, same order.
"""

from __future__ import annotations

from typing import Mapping

from dnsop.base.exceptions import (
    EmptyHostnameError,
    MissingObjectLabelsError,
    UnknownRoutingStrategyError,
)
from dnsop.base.hashing import to_base36_hash_len
from dnsop.model.endpoint import (
    A_RECORD,
    CNAME_RECORD,
    PROVIDER_SPECIFIC_GEO_CODE,
    PROVIDER_SPECIFIC_WEIGHT,
    WILDCARD_GEO,
    Endpoint,
)
from dnsop.model.routing import Routing, RoutingStrategy

DEFAULT_TTL = 60
DEFAULT_CNAME_TTL = 300
CLUSTER_ID_LENGTH = 6

LABEL_GEO_CODE = "kuadrant.io/lb-attribute-geo-code"
DEFAULT_GEO = "default"
DEFAULT_GEO_SET_IDENTIFIER = "default"
LB_PREFIX = "klb"


def short_code(value: str) -> str:
    return to_base36_hash_len(value, CLUSTER_ID_LENGTH)


def geo_from_labels(labels: Mapping[str, str]) -> str:
    return labels.get(LABEL_GEO_CODE, DEFAULT_GEO)


def _endpoint(
    dns_name: str,
    targets: list[str],
    record_type: str,
    set_identifier: str = "",
    ttl: int = DEFAULT_TTL,
    provider_specific: dict[str, str] | None = None,
) -> Endpoint:
    return Endpoint(
        dns_name=dns_name,
        targets=tuple(targets),
        record_type=record_type,
        set_identifier=set_identifier,
        record_ttl=ttl,
        provider_specific=provider_specific or {},
    )


def generate_endpoints(
    target_key: tuple[str, str],
    object_labels: Mapping[str, str] | None,
    hostname: str,
    routing: Routing,
) -> list[Endpoint]:
    """Return the endpoints that expose *hostname* according to *routing*.

    When no geo label is set and ``default_geo_code`` is the ``default``
    sentinel itself, the geo record and the catch-all record would share the
    key ``(klb name, CNAME, "default")``. Only the catch-all one
    (``geo-code="*"``) is emitted, so every key stays unique.

    Args:
        target_key: ``(namespace, name)`` of the object publishing the
            hostname; it seeds the per-writer cluster name.
        object_labels: Labels of that object (geo code, weight selectors).
            Required for load-balanced routing.
        hostname: Hostname to publish, optionally a ``*.`` wildcard.
        routing: Routing to compile.

    Returns:
        Endpoints sorted by ``dns_name + set_identifier``.

    Raises:
        EmptyHostnameError: If *hostname* is empty.
        RoutingValidationError: If *routing* is incomplete.
        MissingObjectLabelsError: Load-balanced routing without labels.
        UnknownRoutingStrategyError: Any other strategy.
    """
    if not hostname:
        raise EmptyHostnameError("listener hostname is empty")

    routing.validate()

    if routing.strategy == RoutingStrategy.SIMPLE:
        endpoints = _simple_endpoints(routing, hostname)
    elif routing.strategy == RoutingStrategy.LOAD_BALANCED:
        if object_labels is None:
            raise MissingObjectLabelsError("object labels required")
        endpoints = _load_balanced_endpoints(target_key, object_labels, routing, hostname)
    else:
        raise UnknownRoutingStrategyError(f"unknown routing strategy : {routing.strategy}")

    return sorted(endpoints, key=Endpoint.sort_key)


def _simple_endpoints(routing: Routing, hostname: str) -> list[Endpoint]:
    ips, hosts = routing.split_addresses()
    endpoints = []
    if ips:
        endpoints.append(_endpoint(hostname, ips, A_RECORD))
    if hosts:
        endpoints.append(_endpoint(hostname, hosts, CNAME_RECORD))
    return endpoints


def _load_balanced_endpoints(
    target_key: tuple[str, str],
    labels: Mapping[str, str],
    routing: Routing,
    hostname: str,
) -> list[Endpoint]:
    namespace, name = target_key
    cname_host = hostname.removeprefix("*.")

    lb_name = f"{LB_PREFIX}.{cname_host}".lower()
    geo_code = geo_from_labels(labels)
    geo_lb_name = f"{geo_code}.{lb_name}".lower()

    ips, hosts = routing.split_addresses()
    endpoints: list[Endpoint] = []

    if ips:
        cluster_lb_name = (
            f"{short_code(routing.cluster_id)}-{short_code(f'{name}-{namespace}')}.{lb_name}"
        ).lower()
        endpoints.append(_endpoint(cluster_lb_name, ips, A_RECORD))
        hosts.append(cluster_lb_name)

    weight = str(routing.get_weight(labels))
    for host in hosts:
        endpoints.append(
            _endpoint(
                geo_lb_name,
                [host],
                CNAME_RECORD,
                set_identifier=host,
                provider_specific={PROVIDER_SPECIFIC_WEIGHT: weight},
            )
        )

    if not endpoints:
        return endpoints

    is_default_geo = geo_code == routing.default_geo_code
    # Same identity key as the catch-all record below; emit that one only.
    if not (is_default_geo and geo_code == DEFAULT_GEO_SET_IDENTIFIER):
        geo_props = {} if geo_code == DEFAULT_GEO else {PROVIDER_SPECIFIC_GEO_CODE: geo_code}
        endpoints.append(
            _endpoint(
                lb_name,
                [geo_lb_name],
                CNAME_RECORD,
                set_identifier=geo_code,
                ttl=DEFAULT_CNAME_TTL,
                provider_specific=geo_props,
            )
        )

    if is_default_geo:
        endpoints.append(
            _endpoint(
                lb_name,
                [geo_lb_name],
                CNAME_RECORD,
                set_identifier=DEFAULT_GEO_SET_IDENTIFIER,
                ttl=DEFAULT_CNAME_TTL,
                provider_specific={PROVIDER_SPECIFIC_GEO_CODE: WILDCARD_GEO},
            )
        )

    endpoints.append(_endpoint(hostname, [lb_name], CNAME_RECORD, ttl=DEFAULT_CNAME_TTL))
    return endpoints
