"""Validation helpers for wallet/mint addresses and identifiers."""

from __future__ import annotations

from typing import Any

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
"""Bitcoin/Solana base58 alphabet (no 0, O, I, l)."""

_BASE58_CHARS = frozenset(BASE58_ALPHABET)

ADDRESS_MIN_LENGTH = 32
ADDRESS_MAX_LENGTH = 44


def is_base58_address(addr: Any) -> bool:
    """Return True if addr is a base58 address of 32..44 chars (after trimming)."""
    if not isinstance(addr, str):
        return False
    s = addr.strip()
    if not ADDRESS_MIN_LENGTH <= len(s) <= ADDRESS_MAX_LENGTH:
        return False
    return all(c in _BASE58_CHARS for c in s)


def normalize_id(value: Any) -> str:
    """Return value as a trimmed string ('' for None / non-strings)."""
    if not isinstance(value, str):
        return ""
    return value.strip()


def normalize_optional(value: Any) -> str | None:
    """Trim an optional text field; blank becomes None."""
    s = normalize_id(value)
    return s or None


def mask_address(addr: str | None) -> str:
    """Return a masked address for logging (e.g. 7xKX...AsU9)."""
    if not addr or len(addr) < 10:
        return "***"
    return f"{addr[:4]}...{addr[-4:]}"
