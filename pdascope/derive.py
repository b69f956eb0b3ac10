"""Program-derived address search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from solders.pubkey import Pubkey

from .constants import PUBKEY_BYTES
from .curve import check_seeds, classify
from .errors import DerivationExhausted, InvalidSeeds
from .seeds import SeedComponent, encode_seeds


@dataclass(frozen=True)
class DerivedAddress:
    address: bytes
    bump: int
    node: str | None = None
    program_id: bytes | None = None

    @property
    def pubkey(self) -> Pubkey:
        return Pubkey(self.address)

    def __str__(self) -> str:
        return str(self.pubkey)


def _program_bytes(program_id) -> bytes:
    raw = bytes(program_id)
    if len(raw) != PUBKEY_BYTES:
        raise ValueError(f"program id must be {PUBKEY_BYTES} bytes")
    return raw


def create_program_address(program_id, seeds: Sequence[bytes]) -> bytes:
    digest, on_curve = classify(_program_bytes(program_id), seeds)
    if on_curve:
        raise InvalidSeeds("seeds produce an on-curve address")
    return digest


def find_program_address(program_id, seeds: Sequence[bytes]) -> tuple[bytes, int]:
    """Search bumps from 255 down to 0 and return the first off-curve address."""
    program = _program_bytes(program_id)
    seeds = list(seeds)
    # The bump occupies one seed slot.
    check_seeds(seeds + [b"\x00"])
    for bump in range(255, -1, -1):
        digest, on_curve = classify(program, seeds + [bytes([bump])])
        if not on_curve:
            return digest, bump
    raise DerivationExhausted(program)


def derive(
    program_id,
    components: Iterable[SeedComponent],
    node: str | None = None,
) -> DerivedAddress:
    program = _program_bytes(program_id)
    try:
        address, bump = find_program_address(program, encode_seeds(components))
    except DerivationExhausted as exc:
        raise DerivationExhausted(program, node) from exc
    return DerivedAddress(address=address, bump=bump, node=node, program_id=program)
