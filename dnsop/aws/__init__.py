"""AWS provider implementation."""

from .provider import Route53Provider

__all__ = ["Route53Provider"]
