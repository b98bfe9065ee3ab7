"""In-memory provider implementation."""

from .provider import InMemoryProvider

__all__ = ["InMemoryProvider"]
