"""Build record resources from a routing description."""

from __future__ import annotations

from typing import Mapping

from dnsop.generator import generate_endpoints
from dnsop.model.record import DNSRecord, DNSRecordSpec, ObjectMeta, ProviderRef
from dnsop.model.routing import Routing


def new_dns_record(
    name: str,
    namespace: str,
    root_host: str,
    provider_ref: str,
    routing: Routing,
    object_labels: Mapping[str, str] | None,
    hostname: str | None = None,
    owner_id: str | None = None,
    target_key: tuple[str, str] | None = None,
) -> DNSRecord:
    """Return a record resource publishing *hostname* under *root_host*.

    Args:
        name: Name of the record resource.
        namespace: Namespace of the record resource and its provider.
        root_host: Root host the record manages.
        provider_ref: Name of the provider descriptor.
        routing: Routing compiled into the record's endpoints.
        object_labels: Labels of the publishing object.
        hostname: Hostname to publish; defaults to *root_host*.
        owner_id: Explicit writer identity; derived from the UID when unset.
        target_key: ``(namespace, name)`` seeding the cluster name;
            defaults to the record's own.

    Raises:
        ValidationError: From endpoint generation.
    """
    endpoints = generate_endpoints(
        target_key or (namespace, name),
        object_labels,
        hostname or root_host,
        routing,
    )
    return DNSRecord(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=DNSRecordSpec(
            owner_id=owner_id,
            root_host=root_host,
            provider_ref=ProviderRef(name=provider_ref),
            endpoints=endpoints,
        ),
    )
