"""GCP provider implementation."""

from .provider import CloudDNSProvider

__all__ = ["CloudDNSProvider"]
