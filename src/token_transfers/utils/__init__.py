# -*- coding: utf-8 -*-
"""Utility modules."""

from token_transfers.utils.timestamps import format_timestamp, parse_timestamp, to_utc
from token_transfers.utils.validation import (
    BASE58_ALPHABET,
    is_base58_address,
    mask_address,
    normalize_id,
    normalize_optional,
)

__all__ = [
    "BASE58_ALPHABET",
    "format_timestamp",
    "is_base58_address",
    "mask_address",
    "normalize_id",
    "normalize_optional",
    "parse_timestamp",
    "to_utc",
]
