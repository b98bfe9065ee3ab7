"""
Provider instance cache.

Record resources reference backends through provider descriptors; every
descriptor with the same type and config shares one backend instance. The
in-memory backend relies on this: every record pointing at the same
config must see the same zone contents.

A descriptor is *bound* to the instance it last resolved to. An instance
is evicted once no descriptor is bound to it, either because its
descriptor was released or because the descriptor's config changed.
"""

from __future__ import annotations

import hashlib
import json
import threading
from typing import Any, Callable


def cache_key(provider_type: str, config: dict) -> str:
    """Deterministic digest of a provider type and config.

    Credentials in *config* never appear in the key itself.
    """
    serialised = json.dumps(
        {"provider": provider_type, "config": config},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(serialised.encode()).hexdigest()


class ProviderCache:
    """Thread-safe, process-wide cache of provider instances."""

    _instance: ProviderCache | None = None
    _providers: dict[str, Any]
    _bindings: dict[str, str]
    _lock: threading.Lock

    def __new__(cls) -> ProviderCache:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._providers = {}
            cls._instance._bindings = {}
            cls._instance._lock = threading.Lock()
        return cls._instance

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def get_or_create(
        self,
        provider_type: str,
        config: dict,
        factory: Callable[[str, dict], Any],
        descriptor_key: str | None = None,
    ) -> Any:
        """Return the instance for *provider_type* and *config*.

        Args:
            provider_type: Provider type name (e.g. 'aws').
            config: Backend configuration dict.
            factory: ``factory(provider_type, config)`` builds a missing instance.
            descriptor_key: ``namespace/name`` of the descriptor resolving
                the instance; binds it, dropping its previous binding.

        Returns:
            The cached (or newly-created) instance.
        """
        key = cache_key(provider_type, config)
        with self._lock:
            if key not in self._providers:
                self._providers[key] = factory(provider_type, config)
            if descriptor_key is not None:
                previous = self._bindings.get(descriptor_key)
                self._bindings[descriptor_key] = key
                if previous is not None and previous != key:
                    self._evict_unbound(previous)
            return self._providers[key]

    def release(self, descriptor_key: str) -> None:
        """Unbind a deleted descriptor; evict its instance if now unused."""
        with self._lock:
            key = self._bindings.pop(descriptor_key, None)
            if key is not None:
                self._evict_unbound(key)

    def _evict_unbound(self, key: str) -> None:
        if key not in self._bindings.values():
            self._providers.pop(key, None)

    def clear(self) -> None:
        """Flush every cached instance and binding."""
        with self._lock:
            self._providers.clear()
            self._bindings.clear()
