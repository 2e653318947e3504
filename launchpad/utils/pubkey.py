"""Utilities for working with Solana base58 public keys."""
from __future__ import annotations

import re

from solders.pubkey import Pubkey

BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")


def is_base58_pubkey(value: str) -> bool:
    """Return True if *value* looks like a Solana base58 pubkey."""
    return bool(value) and bool(BASE58_RE.fullmatch(value)) and 32 <= len(value) <= 44


def parse_pubkey(value: str) -> Pubkey:
    """Return a :class:`Pubkey` for ``value`` or raise ``ValueError``."""
    value = (value or "").strip()
    if not is_base58_pubkey(value):
        raise ValueError(f"invalid base58 address: {value!r}")
    try:
        return Pubkey.from_string(value)
    except Exception as exc:
        raise ValueError(f"invalid base58 address: {value!r}") from exc


__all__ = ["is_base58_pubkey", "parse_pubkey"]
