"""
Reconciliation driver.

:class:`DNSRecordReconciler` runs one pass for one record resource: it
assigns the owner ID, validates the endpoints, picks the zone, plans the
writer's changes against the shared zone and applies them, then writes
the outcome to the record status exactly once. Deletion is gated by a
finalizer until the writer's records are gone from the last zone it used.

:class:`ReconcileLoop` feeds the reconciler from store notifications and
a periodic resync with a fixed pool of workers.

Passes for one record are serialized, and so are read-plan-write cycles
for one ``(zone, root host)`` pair. Provider calls run in worker threads
with a timeout and are the only points where a pass can be cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Hashable

from dnsop.arbitration import plan_changes
from dnsop.base.async_support import call_in_thread
from dnsop.base.config import ControllerConfig
from dnsop.base.exceptions import (
    ArbitrationError,
    DNSProviderError,
    NoSuitableZoneError,
    ResourceNotFoundError,
    UnsupportedRecordError,
    ValidationError,
    ZoneFilterMismatchError,
)
from dnsop.base.logger import DNSOpLogger, op_logger
from dnsop.base.provider import ProviderBlueprint
from dnsop.base.retry import retry
from dnsop.factory import release_provider, resolve_provider
from dnsop.model.endpoint import Zone
from dnsop.model.provider import ProviderDescriptor
from dnsop.model.record import (
    CONDITION_READY,
    FINALIZER,
    REASON_AWAITING_VALIDATION,
    REASON_DNS_PROVIDER_ERROR,
    REASON_PROVIDER_ERROR,
    REASON_PROVIDER_SUCCESS,
    DNSRecord,
    RecordPhase,
)
from dnsop.registry import TXTRegistry
from dnsop.store import DELETED, KIND_PROVIDER, KIND_RECORD, RecordStore
from dnsop.zones import check_zone_compatible, select_zone

MSG_SUCCESS = "Provider ensured the dns record"
MSG_AWAITING_VALIDATION = "Awaiting validation"
MSG_NO_ZONE = "Unable to find suitable zone in provider: {}"
MSG_PROVIDER_NOT_LOADED = "The dns provider could not be loaded: {}"

_TRANSIENT = (DNSProviderError, ConnectionError, TimeoutError, asyncio.TimeoutError)


class ProviderLoadError(Exception):
    """Descriptor missing, unsupported or not compatible with the status zone."""


@dataclass
class ReconcileResult:
    """Outcome of one pass.

    Attributes:
        requeue_after: Seconds after which the record should be retried,
            ``None`` to wait for the next change or resync.
        wrote: Whether the pass changed the zone.
        root_host: Root host the pass worked on.
    """

    requeue_after: float | None = None
    wrote: bool = False
    root_host: str | None = None


class KeyedLocks:
    """asyncio locks created per key and dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class DNSRecordReconciler:
    """Drives record resources in *store* towards their desired zone state."""

    def __init__(
        self,
        store: RecordStore,
        config: ControllerConfig | None = None,
        provider_resolver: Callable[[ProviderDescriptor], ProviderBlueprint] = resolve_provider,
    ) -> None:
        self.store = store
        self.config = config or ControllerConfig()
        self.provider_resolver = provider_resolver
        self.record_locks = KeyedLocks()
        self.zone_locks = KeyedLocks()
        self._call = retry(
            max_attempts=self.config.retry_max_attempts,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
        )(self._call_once)

    # ── Provider calls ───────────────────────────────────────────────

    async def _call_once(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await call_in_thread(fn, *args, timeout=self.config.provider_timeout)

    # ── Entry points ─────────────────────────────────────────────────

    async def reconcile_key(self, key: str) -> ReconcileResult:
        namespace, _, name = key.partition("/")
        return await self.reconcile(namespace, name)

    async def reconcile_all(self) -> dict[str, ReconcileResult]:
        """Run one pass for every record in the store, in key order."""
        return {r.key: await self.reconcile_key(r.key) for r in self.store.list_records()}

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Run one pass for the record ``namespace/name``.

        Every failure ends up in the record's Ready condition; only
        cancellation propagates.
        """
        key = f"{namespace}/{name}"
        async with self.record_locks.hold(key):
            try:
                record = self.store.get(namespace, name)
            except ResourceNotFoundError:
                op_logger.debug("Record gone, nothing to do", record=key, operation="reconcile")
                return ReconcileResult()

            log = op_logger.bind(
                record=key,
                root_host=record.spec.root_host,
                owner_id=self._owner_id(record),
                zone_id=record.status.zone_id,
            )
            if record.is_deleting():
                return await self._finalize(record, log.bind(operation="finalize"))
            log = log.bind(operation="reconcile")

            if FINALIZER not in record.metadata.finalizers:
                self.store.add_finalizer(namespace, name, FINALIZER)
                record.metadata.finalizers.append(FINALIZER)

            result = ReconcileResult(root_host=record.spec.root_host)
            try:
                result.wrote = await self._reconcile_pass(record, log)
            except (ValidationError, ArbitrationError) as e:
                self._fail(log, record, RecordPhase.ERROR, REASON_PROVIDER_ERROR, str(e))
            except NoSuitableZoneError as e:
                self._fail(
                    log, record, RecordPhase.ERROR, REASON_DNS_PROVIDER_ERROR,
                    MSG_NO_ZONE.format(e),
                )
            except (ProviderLoadError, ZoneFilterMismatchError) as e:
                self._fail(
                    log, record, RecordPhase.ERROR, REASON_DNS_PROVIDER_ERROR,
                    MSG_PROVIDER_NOT_LOADED.format(e),
                )
            except UnsupportedRecordError as e:
                self._fail(log, record, RecordPhase.ERROR, REASON_PROVIDER_ERROR, str(e))
            except _TRANSIENT as e:
                self._fail(
                    log, record, RecordPhase.ERROR, REASON_DNS_PROVIDER_ERROR, str(e) or repr(e)
                )
                result.requeue_after = self.config.retry_max_delay
            except Exception as e:
                log.log_operation(logging.ERROR, f"Unexpected error: {e}", exc_info=True)
                self._fail(
                    log, record, RecordPhase.ERROR, REASON_PROVIDER_ERROR, str(e) or repr(e)
                )
                result.requeue_after = self.config.retry_max_delay

            self._write_status(log, record)
            return result

    # ── Reconcile ────────────────────────────────────────────────────

    def _owner_id(self, record: DNSRecord) -> str:
        return record.status.owner_id or record.spec.owner_id or record.uid_hash()

    def _load_provider(self, record: DNSRecord) -> tuple[ProviderDescriptor, ProviderBlueprint]:
        try:
            descriptor = self.store.get_provider(
                record.metadata.namespace, record.spec.provider_ref.name
            )
            return descriptor, self.provider_resolver(descriptor)
        except (ResourceNotFoundError, ValueError) as e:
            raise ProviderLoadError(str(e)) from e

    async def _reconcile_pass(self, record: DNSRecord, log: DNSOpLogger) -> bool:
        """Run the pass; returns whether the zone was changed."""
        status = record.status
        owner_id = self._owner_id(record)
        status.owner_id = owner_id
        root_host = record.spec.root_host

        record.validate_endpoints()

        descriptor, provider = self._load_provider(record)
        zones: list[Zone] = await self._call(provider.list_zones)

        if status.zone_id:
            check_zone_compatible(
                status.zone_id,
                status.zone_domain_name or "",
                zones,
                descriptor.domain_filter,
                descriptor.zone_id_filter,
            )

        zone = select_zone(root_host, zones, descriptor.domain_filter, descriptor.zone_id_filter)

        if status.zone_id and zone.id != status.zone_id:
            log.info(f"Moving from zone {status.zone_id} to {zone.id}", operation="zone-move")
            await self._cleanup(provider, status.zone_id, status.root_host or root_host, owner_id)

        status.zone_id = zone.id
        status.zone_domain_name = zone.domain_name
        status.root_host = root_host
        log = log.bind(zone_id=zone.id)

        desired = provider.adjust_endpoints(record.spec.endpoints)
        async with self.zone_locks.hold((zone.id, root_host)):
            registry = TXTRegistry(provider, self.config.txt_prefix)
            current = await self._call(registry.records, zone.id)
            plan = plan_changes(owner_id, desired, current, [root_host])

            if plan.awaiting_validation:
                status.write_counter += 1
                log.warning("Conflicting records: " + "; ".join(str(c) for c in plan.conflicts))
                self._set_ready(
                    record, RecordPhase.AWAITING_VALIDATION, False,
                    REASON_AWAITING_VALIDATION, MSG_AWAITING_VALIDATION,
                )
                return False

            applied = await self._call(registry.apply_changes, zone.id, owner_id, plan.changes)

        wrote = applied.has_changes()
        if wrote:
            status.write_counter += 1
            log.info(
                f"Applied {len(applied.create)} create, {len(applied.update_new)} update, "
                f"{len(applied.delete)} delete"
            )
        self._set_ready(record, RecordPhase.READY, True, REASON_PROVIDER_SUCCESS, MSG_SUCCESS)
        return wrote

    async def _cleanup(
        self, provider: ProviderBlueprint, zone_id: str, root_host: str, owner_id: str
    ) -> None:
        """Remove or release every record *owner_id* holds under *root_host*."""
        async with self.zone_locks.hold((zone_id, root_host)):
            registry = TXTRegistry(provider, self.config.txt_prefix)
            current = await self._call(registry.records, zone_id)
            plan = plan_changes(owner_id, [], current, [root_host])
            await self._call(registry.apply_changes, zone_id, owner_id, plan.changes)

    # ── Deletion ─────────────────────────────────────────────────────

    async def _finalize(self, record: DNSRecord, log: DNSOpLogger) -> ReconcileResult:
        """Clean up the last recorded zone, then release the finalizer.

        Stays in Terminating while the cleanup fails. Every failure but an
        unsupported record is retried after ``retry_max_delay``.
        """
        ns, name = record.metadata.namespace, record.metadata.name
        if FINALIZER not in record.metadata.finalizers:
            return ReconcileResult()

        status = record.status
        status.phase = RecordPhase.TERMINATING
        owner_id = self._owner_id(record)

        if status.zone_id:
            try:
                descriptor, provider = self._load_provider(record)
                zones = await self._call(provider.list_zones)
                check_zone_compatible(
                    status.zone_id,
                    status.zone_domain_name or "",
                    zones,
                    descriptor.domain_filter,
                    descriptor.zone_id_filter,
                )
                await self._cleanup(
                    provider, status.zone_id, status.root_host or record.spec.root_host, owner_id
                )
            except (ProviderLoadError, ZoneFilterMismatchError) as e:
                return self._blocked(
                    log, record, REASON_DNS_PROVIDER_ERROR, MSG_PROVIDER_NOT_LOADED.format(e)
                )
            except UnsupportedRecordError as e:
                return self._blocked(log, record, REASON_PROVIDER_ERROR, str(e), requeue=False)
            except _TRANSIENT as e:
                return self._blocked(log, record, REASON_DNS_PROVIDER_ERROR, str(e) or repr(e))
            except Exception as e:
                log.log_operation(logging.ERROR, f"Unexpected error: {e}", exc_info=True)
                return self._blocked(log, record, REASON_PROVIDER_ERROR, str(e) or repr(e))

        log.info("Records cleaned up, releasing finalizer")
        self.store.remove_finalizer(ns, name, FINALIZER)
        return ReconcileResult(wrote=bool(status.zone_id), root_host=status.root_host)

    def _blocked(
        self, log: DNSOpLogger, record: DNSRecord, reason: str, message: str, requeue: bool = True
    ) -> ReconcileResult:
        self._fail(log, record, RecordPhase.TERMINATING, reason, message)
        self._write_status(log, record)
        return ReconcileResult(requeue_after=self.config.retry_max_delay if requeue else None)

    # ── Status ───────────────────────────────────────────────────────

    def _set_ready(
        self, record: DNSRecord, phase: RecordPhase, ok: bool, reason: str, message: str
    ) -> None:
        record.status.phase = phase
        record.status.observed_generation = record.metadata.generation
        record.status.set_condition(
            CONDITION_READY, ok, reason, message, record.metadata.generation
        )

    def _fail(
        self, log: DNSOpLogger, record: DNSRecord, phase: RecordPhase, reason: str, message: str
    ) -> None:
        log.warning(message)
        self._set_ready(record, phase, False, reason, message)

    def _write_status(self, log: DNSOpLogger, record: DNSRecord) -> None:
        try:
            self.store.update_status(record)
        except ResourceNotFoundError:
            log.debug("Record deleted during pass")


class ReconcileLoop:
    """Queue-driven worker pool around a :class:`DNSRecordReconciler`.

    Keys are de-duplicated while queued. Store notifications, requeues and
    the periodic resync all feed the same queue.
    """

    def __init__(self, reconciler: DNSRecordReconciler) -> None:
        self.reconciler = reconciler
        self.store = reconciler.store
        self.config = reconciler.config
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._queued: set[str] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    def enqueue(self, key: str) -> None:
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def enqueue_all(self) -> None:
        for record in self.store.list_records():
            self.enqueue(record.key)

    def _on_event(self, kind: str, event: str, key: str) -> None:
        # Store listeners may fire from any thread.
        assert self._loop is not None
        keys = [key] if kind == KIND_RECORD else []
        if kind == KIND_PROVIDER:
            if event == DELETED:
                release_provider(key)
            keys = self.store.records_for_provider(key)
        for k in keys:
            self._loop.call_soon_threadsafe(self.enqueue, k)

    def _enqueue_siblings(self, key: str, root_host: str) -> None:
        for record in self.store.list_records():
            if record.key != key and record.spec.root_host == root_host:
                self.enqueue(record.key)

    async def _process(self, key: str) -> ReconcileResult:
        try:
            return await self.reconciler.reconcile_key(key)
        except Exception:
            op_logger.log_operation(
                logging.ERROR, "Reconcile pass failed", exc_info=True, record=key,
                operation="reconcile",
            )
            return ReconcileResult(requeue_after=self.config.retry_max_delay)
        finally:
            self._queue.task_done()

    async def _worker(self) -> None:
        while True:
            key = await self._queue.get()
            self._queued.discard(key)
            result = await self._process(key)
            if result.requeue_after is not None:
                assert self._loop is not None
                self._loop.call_later(result.requeue_after, self.enqueue, key)
            if result.wrote and result.root_host:
                self._enqueue_siblings(key, result.root_host)

    async def _resync(self) -> None:
        while True:
            await asyncio.sleep(self.config.resync_interval)
            op_logger.debug("Periodic resync", operation="resync")
            self.enqueue_all()

    async def run(self, stop: asyncio.Event) -> None:
        """Process records until *stop* is set."""
        self._loop = asyncio.get_running_loop()
        unsubscribe = self.store.subscribe(self._on_event)
        self.enqueue_all()
        tasks = [asyncio.create_task(self._worker()) for _ in range(self.config.workers)]
        tasks.append(asyncio.create_task(self._resync()))
        op_logger.info(f"Reconcile loop started with {self.config.workers} workers", operation="run")
        try:
            await stop.wait()
        finally:
            unsubscribe()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            op_logger.info("Reconcile loop stopped", operation="run")

    async def drain(self) -> None:
        """Process everything currently queued (and what it enqueues) once."""
        self._loop = asyncio.get_running_loop()
        while not self._queue.empty():
            key = self._queue.get_nowait()
            self._queued.discard(key)
            result = await self._process(key)
            if result.wrote and result.root_host:
                self._enqueue_siblings(key, result.root_host)
