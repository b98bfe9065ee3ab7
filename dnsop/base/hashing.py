"""Deterministic short codes used for cluster names and derived owner IDs."""

from __future__ import annotations

import hashlib

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36_hash(value: str) -> str:
    """Return the SHA-224 digest of *value* rendered as a base-36 number."""
    number = int.from_bytes(hashlib.sha224(value.encode()).digest(), "big")
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def to_base36_hash_len(value: str, length: int) -> str:
    """Return the first *length* characters of :func:`to_base36_hash`."""
    return to_base36_hash(value)[:length]
