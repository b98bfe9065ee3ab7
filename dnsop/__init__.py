"""dnsop: multi-writer DNS record controller.

Several independent writers (one per cluster) publish the records of a
shared hostname into one authoritative zone. Import the engines directly
or drive everything through the reconciler::

    from dnsop import DNSRecordReconciler, RecordStore, new_dns_record

    store = RecordStore()
    store.put_provider(ProviderDescriptor(name="dns", type="inmemory",
                                          config={"zones": ["example.com"]}))
    store.create(new_dns_record("shop", "default", "shop.example.com", "dns",
                                routing, object_labels={}))
    asyncio.run(DNSRecordReconciler(store).reconcile_all())
"""

from .arbitration import Plan, plan_changes
from .base import ProviderBlueprint
from .builder import new_dns_record
from .controller import DNSRecordReconciler, ReconcileLoop, ReconcileResult
from .factory import provider_factory, resolve_provider
from .generator import generate_endpoints
from .model import DNSRecord, Endpoint, ProviderDescriptor, Routing, Zone, new_routing
from .registry import TXTRegistry
from .store import RecordStore
from .zones import check_zone_compatible, select_zone

__all__ = [
    "DNSRecord",
    "DNSRecordReconciler",
    "Endpoint",
    "Plan",
    "ProviderBlueprint",
    "ProviderDescriptor",
    "ReconcileLoop",
    "ReconcileResult",
    "RecordStore",
    "Routing",
    "TXTRegistry",
    "Zone",
    "check_zone_compatible",
    "generate_endpoints",
    "new_dns_record",
    "new_routing",
    "plan_changes",
    "provider_factory",
    "resolve_provider",
    "select_zone",
]
