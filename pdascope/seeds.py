"""Seed components and the ``kind:value`` seed spec syntax.

Seed specs follow the ``solana find-program-derived-address`` argument
format (``string:vault``, ``pubkey:<base58>``, ``u64le:1``) with two
additions: a value starting with ``$`` names a root identifier supplied at
resolve time, and ``node:<name>`` feeds in the address derived for an
upstream schema node.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from solders.pubkey import Pubkey

from .constants import PUBKEY_BYTES
from .errors import InvalidSeedSpec
from .util import parse_u64

INT_WIDTHS = {"u8": 1, "u16le": 2, "u32le": 4, "u64le": 8}
SEED_KINDS = frozenset({"string", "pubkey", "hex", "node", *INT_WIDTHS})


def coerce_pubkey(value: Any, name: str) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, (bytes, bytearray)):
        if len(value) != PUBKEY_BYTES:
            raise ValueError(f"{name} must be {PUBKEY_BYTES} bytes, got {len(value)}")
        return Pubkey(bytes(value))
    if isinstance(value, str) and value.strip():
        try:
            return Pubkey.from_string(value.strip())
        except ValueError as exc:
            raise ValueError(f"{name} is not a valid base58 pubkey: {value!r}") from exc
    raise ValueError(f"{name} must be a base58 pubkey")


# ── Concrete components ────────────────────────────────────────────


@dataclass(frozen=True)
class LiteralSeed:
    value: bytes

    def to_bytes(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class AddressSeed:
    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != PUBKEY_BYTES:
            raise ValueError(f"address seed must be {PUBKEY_BYTES} bytes")

    def to_bytes(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class IntSeed:
    """Fixed-width little-endian unsigned integer."""

    value: int
    width: int = 8

    def __post_init__(self) -> None:
        if self.width not in INT_WIDTHS.values():
            raise ValueError(f"unsupported integer seed width {self.width}")
        if self.value < 0 or self.value >= 1 << (8 * self.width):
            raise ValueError(f"integer seed {self.value} does not fit in {self.width} bytes")

    def to_bytes(self) -> bytes:
        return self.value.to_bytes(self.width, "little")


SeedComponent = Union[LiteralSeed, AddressSeed, IntSeed]


def encode_seeds(components) -> list[bytes]:
    return [component.to_bytes() for component in components]


# ── Seed specs ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class SeedSpec:
    kind: str
    value: str

    @property
    def root(self) -> str | None:
        if self.kind != "node" and self.value.startswith("$"):
            return self.value[1:]
        return None

    @property
    def upstream(self) -> str | None:
        return self.value if self.kind == "node" else None

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"

    def bind(self, roots: Mapping[str, Any], derived: Mapping[str, bytes]) -> SeedComponent:
        """Turn the spec into a concrete component.

        Callers must have checked that referenced roots and upstream nodes
        are present.
        """
        if self.kind == "node":
            return AddressSeed(derived[self.value])
        raw: Any = roots[self.root] if self.root is not None else self.value
        label = f"${self.root}" if self.root is not None else str(self)
        try:
            if self.kind == "string":
                if isinstance(raw, (bytes, bytearray)):
                    return LiteralSeed(bytes(raw))
                if not isinstance(raw, str):
                    raise ValueError(f"{label} must be a string")
                return LiteralSeed(raw.encode("utf-8"))
            if self.kind == "pubkey":
                return AddressSeed(bytes(coerce_pubkey(raw, label)))
            if self.kind == "hex":
                if isinstance(raw, (bytes, bytearray)):
                    return LiteralSeed(bytes(raw))
                return LiteralSeed(bytes.fromhex(str(raw)))
            width = INT_WIDTHS[self.kind]
            return IntSeed(parse_u64(raw, label), width)
        except ValueError as exc:
            raise InvalidSeedSpec(f"cannot encode seed {self}: {exc}") from exc


def parse_seed_spec(text: str) -> SeedSpec:
    if not isinstance(text, str) or ":" not in text:
        raise InvalidSeedSpec(f"seed spec must look like 'kind:value', got {text!r}")
    kind, value = text.split(":", 1)
    kind = kind.strip().lower()
    value = value.strip()
    if kind not in SEED_KINDS:
        raise InvalidSeedSpec(
            f"unknown seed kind '{kind}' (expected one of {', '.join(sorted(SEED_KINDS))})"
        )
    if not value and kind != "string":
        raise InvalidSeedSpec(f"seed spec '{text}' has an empty value")
    if kind == "node" and value.startswith("$"):
        raise InvalidSeedSpec(f"node seed must name a schema node, got '{value}'")
    return SeedSpec(kind=kind, value=value)
