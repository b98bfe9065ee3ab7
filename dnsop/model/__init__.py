"""Data model shared by the engines, the store and the provider backends."""

from .endpoint import Changes, Endpoint, Zone
from .provider import ProviderDescriptor
from .record import (
    DNSRecord,
    DNSRecordSpec,
    DNSRecordStatus,
    HealthCheckSpec,
    ObjectMeta,
    ProviderRef,
    RecordPhase,
)
from .routing import AddressKind, CustomWeight, LoadBalancing, Routing, RoutingStrategy, new_routing
from .selector import LabelSelector, SelectorOperator, SelectorRequirement

__all__ = [
    "AddressKind",
    "Changes",
    "CustomWeight",
    "DNSRecord",
    "DNSRecordSpec",
    "DNSRecordStatus",
    "Endpoint",
    "HealthCheckSpec",
    "LabelSelector",
    "LoadBalancing",
    "ObjectMeta",
    "ProviderDescriptor",
    "ProviderRef",
    "RecordPhase",
    "Routing",
    "RoutingStrategy",
    "SelectorOperator",
    "SelectorRequirement",
    "Zone",
    "new_routing",
]
