"""
In-process resource store for record resources and provider descriptors.

Stands in for a declarative API server: objects are copied on the way in
and out, spec changes bump ``metadata.generation``, deletion of an object
carrying finalizers only marks it, and every change is published to
subscribers as ``(kind, event, key)``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

from dnsop.base.exceptions import ResourceConflictError, ResourceNotFoundError
from dnsop.model.provider import ProviderDescriptor
from dnsop.model.record import DNSRecord, validate_owner_id_update

logger = logging.getLogger("dnsop")

KIND_RECORD = "record"
KIND_PROVIDER = "provider"

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"

Listener = Callable[[str, str, str], None]


class RecordStore:
    """Thread-safe store with change notifications."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, DNSRecord] = {}
        self._providers: dict[str, ProviderDescriptor] = {}
        self._listeners: list[Listener] = []

    # --- Notifications ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, kind: str, event: str, key: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(kind, event, key)

    # --- Records ---

    def create(self, record: DNSRecord) -> DNSRecord:
        """Store a new record, assigning its UID and first generation.

        Raises:
            ResourceConflictError: If the key is taken.
        """
        record = record.model_copy(deep=True)
        with self._lock:
            if record.key in self._records:
                raise ResourceConflictError(f"record {record.key} already exists")
            record.metadata.uid = record.metadata.uid or str(uuid.uuid4())
            record.metadata.generation = 1
            record.metadata.deletion_timestamp = None
            self._records[record.key] = record
        self._notify(KIND_RECORD, ADDED, record.key)
        return record.model_copy(deep=True)

    def get(self, namespace: str, name: str) -> DNSRecord:
        key = f"{namespace}/{name}"
        with self._lock:
            try:
                return self._records[key].model_copy(deep=True)
            except KeyError:
                raise ResourceNotFoundError(f"record {key} not found") from None

    def list_records(self) -> list[DNSRecord]:
        with self._lock:
            return [r.model_copy(deep=True) for _, r in sorted(self._records.items())]

    def update(self, record: DNSRecord) -> DNSRecord:
        """Replace a record's spec and labels.

        Raises:
            ResourceNotFoundError: If the record does not exist.
            OwnerIDImmutableError: If the update touches an assigned owner ID.
        """
        with self._lock:
            stored = self._get_stored(record.key)
            validate_owner_id_update(stored.spec, record.spec)
            if record.spec != stored.spec:
                stored.spec = record.spec.model_copy(deep=True)
                stored.metadata.generation += 1
            stored.metadata.labels = dict(record.metadata.labels)
            result = stored.model_copy(deep=True)
        self._notify(KIND_RECORD, MODIFIED, record.key)
        return result

    def update_status(self, record: DNSRecord) -> DNSRecord:
        """Replace a record's status. Status writes are not re-published."""
        with self._lock:
            stored = self._get_stored(record.key)
            stored.status = record.status.model_copy(deep=True)
            return stored.model_copy(deep=True)

    def delete(self, namespace: str, name: str) -> None:
        """Delete a record, or mark it for deletion while finalizers remain."""
        key = f"{namespace}/{name}"
        with self._lock:
            stored = self._get_stored(key)
            if stored.metadata.finalizers:
                if stored.metadata.deletion_timestamp is None:
                    stored.metadata.deletion_timestamp = datetime.now(timezone.utc)
                event = MODIFIED
            else:
                del self._records[key]
                event = DELETED
        self._notify(KIND_RECORD, event, key)

    def add_finalizer(self, namespace: str, name: str, finalizer: str) -> None:
        key = f"{namespace}/{name}"
        with self._lock:
            stored = self._get_stored(key)
            if finalizer in stored.metadata.finalizers:
                return
            stored.metadata.finalizers.append(finalizer)

    def remove_finalizer(self, namespace: str, name: str, finalizer: str) -> None:
        """Drop *finalizer*; a marked record with no finalizers left is removed."""
        key = f"{namespace}/{name}"
        with self._lock:
            stored = self._get_stored(key)
            if finalizer not in stored.metadata.finalizers:
                return
            stored.metadata.finalizers.remove(finalizer)
            removed = stored.is_deleting() and not stored.metadata.finalizers
            if removed:
                del self._records[key]
        if removed:
            logger.debug("Record %s removed after finalization", key)
            self._notify(KIND_RECORD, DELETED, key)

    def _get_stored(self, key: str) -> DNSRecord:
        try:
            return self._records[key]
        except KeyError:
            raise ResourceNotFoundError(f"record {key} not found") from None

    # --- Provider descriptors ---

    def put_provider(self, descriptor: ProviderDescriptor) -> None:
        with self._lock:
            event = MODIFIED if descriptor.key in self._providers else ADDED
            self._providers[descriptor.key] = descriptor.model_copy(deep=True)
        self._notify(KIND_PROVIDER, event, descriptor.key)

    def get_provider(self, namespace: str, name: str) -> ProviderDescriptor:
        key = f"{namespace}/{name}"
        with self._lock:
            try:
                return self._providers[key].model_copy(deep=True)
            except KeyError:
                raise ResourceNotFoundError(f"provider {key} not found") from None

    def delete_provider(self, namespace: str, name: str) -> None:
        key = f"{namespace}/{name}"
        with self._lock:
            if self._providers.pop(key, None) is None:
                raise ResourceNotFoundError(f"provider {key} not found")
        self._notify(KIND_PROVIDER, DELETED, key)

    def records_for_provider(self, provider_key: str) -> list[str]:
        """Keys of the records that reference the descriptor *provider_key*."""
        namespace, _, name = provider_key.partition("/")
        with self._lock:
            return sorted(
                key
                for key, r in self._records.items()
                if r.metadata.namespace == namespace and r.spec.provider_ref.name == name
            )
