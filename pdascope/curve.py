"""Curve-membership hashing for program-derived addresses.

A program-derived address is the SHA-256 digest of the seeds, the program id
and a fixed marker. It is only valid when the digest does *not* decode to a
point on the Edwards25519 curve, so that no private key can exist for it.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

from .constants import MAX_SEED_LEN, MAX_SEEDS, PDA_MARKER, PUBKEY_BYTES
from .errors import InvalidSeedLength

# Edwards25519: -x^2 + y^2 = 1 + d*x^2*y^2 over GF(2^255 - 19).
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P
_Y_MASK = (1 << 255) - 1


def check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeedLength(f"too many seeds: {len(seeds)} > {MAX_SEEDS}")
    for idx, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeedLength(
                f"seed {idx} is {len(seed)} bytes; max seed length is {MAX_SEED_LEN}"
            )


def hash_seeds(program_id: bytes, seeds: Sequence[bytes]) -> bytes:
    """Return the domain-separated digest for ``seeds`` under ``program_id``."""
    if len(program_id) != PUBKEY_BYTES:
        raise ValueError(f"program id must be {PUBKEY_BYTES} bytes")
    check_seeds(seeds)
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    return hasher.digest()


def is_on_curve(point: bytes) -> bool:
    """Report whether ``point`` decompresses to an Edwards25519 point.

    Matches the ledger's decompression: the sign bit is ignored and a
    non-canonical y (>= p) is reduced rather than rejected.
    """
    if len(point) != PUBKEY_BYTES:
        raise ValueError(f"curve point must be {PUBKEY_BYTES} bytes")
    y = (int.from_bytes(point, "little") & _Y_MASK) % _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    # x^2 = u / v; v is never zero because d is a non-square.
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    return pow(x2, (_P - 1) // 2, _P) == 1


def classify(program_id: bytes, seeds: Sequence[bytes]) -> tuple[bytes, bool]:
    """Hash ``seeds`` and return ``(digest, on_curve)``."""
    digest = hash_seeds(program_id, seeds)
    return digest, is_on_curve(digest)
