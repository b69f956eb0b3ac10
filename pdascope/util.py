"""Utility helpers for pdascope."""

from __future__ import annotations

from .constants import U64_MAX


def parse_u64(raw, name: str) -> int:
    """Parse a u64 from an int or a decimal/hex string."""
    if isinstance(raw, bool):
        raise ValueError(f"{name} must be an integer or string")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValueError(f"{name} must not be empty")
        if text.lower().startswith("0x"):
            value = int(text, 16)
        else:
            value = int(text, 10)
    else:
        raise ValueError(f"{name} must be an integer or string")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} must be within u64 range")
    return value


def clean(value) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None
