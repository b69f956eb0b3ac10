"""Ledger probe: batched, read-only account inspection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Union

from solders.pubkey import Pubkey

from .batch import BatchExecutor
from .transport import LedgerTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountObservation:
    exists: bool
    owner: Pubkey | None = None
    executable: bool = False
    data_length: int = 0
    lamports: int = 0

    @classmethod
    def absent(cls) -> "AccountObservation":
        return cls(exists=False)


@dataclass(frozen=True)
class ProbeFailed:
    address: Pubkey
    cause: str


ProbeResult = Union[AccountObservation, ProbeFailed]


def observe(transport: LedgerTransport, address: Pubkey) -> AccountObservation:
    info = transport.get_account_info(address)
    if info is None:
        return AccountObservation.absent()
    return AccountObservation(
        exists=True,
        owner=info.owner,
        executable=info.executable,
        data_length=info.data_length,
        lamports=info.lamports,
    )


async def probe(
    transport: LedgerTransport,
    addresses: Iterable[Pubkey],
    *,
    executor: BatchExecutor,
    timeout: float | None = None,
) -> Dict[Pubkey, ProbeResult]:
    """Observe every distinct address; failures are isolated per address."""
    addresses = list(dict.fromkeys(addresses))
    results, errors, pending = await executor.map(
        lambda address: observe(transport, address), addresses, timeout=timeout
    )
    out: Dict[Pubkey, ProbeResult] = {}
    for address in addresses:
        if address in results:
            out[address] = results[address]
        elif address in errors:
            exc = errors[address]
            logger.debug("probe of %s failed: %s", address, exc)
            out[address] = ProbeFailed(address, str(exc) or type(exc).__name__)
        else:
            out[address] = ProbeFailed(address, f"timed out after {timeout:.1f}s")
    logger.debug(
        "probed %d addresses: %d ok, %d failed, %d timed out",
        len(addresses),
        len(results),
        len(errors),
        len(pending),
    )
    return out
