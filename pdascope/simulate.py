"""Dry-run simulation of a no-op instruction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .errors import SimulationTransportError, TargetNotExecutable, TransportError
from .probe import ProbeResult
from .report import Classification, classify_program
from .transport import LedgerTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationOutcome:
    program_id: Pubkey
    succeeded: bool
    log_lines: tuple[str, ...] = ()
    error_detail: dict[str, Any] | None = None


@dataclass(frozen=True)
class SimulationSkipped:
    program_id: Pubkey
    reason: str
    detail: dict[str, Any] = field(default_factory=dict)


def build_noop_transaction(program_id: Pubkey, identity: Keypair, blockhash: Hash) -> Transaction:
    """Empty-data instruction with the payer as sole signing, read-only account."""
    payer = identity.pubkey()
    ix = Instruction(program_id, b"", [AccountMeta(payer, is_signer=True, is_writable=False)])
    message = Message.new_with_blockhash([ix], payer, blockhash)
    return Transaction([identity], message, blockhash)


def _error_detail(err: Any) -> dict[str, Any]:
    return {"type": type(err).__name__, "message": str(err)}


def simulate(
    transport: LedgerTransport,
    program_id: Pubkey,
    identity: Keypair,
    observation: ProbeResult,
) -> SimulationOutcome:
    """Simulate a no-op against ``program_id``; never commits anything.

    Raises TargetNotExecutable without any transport call unless
    ``observation`` shows an executable account.
    """
    status = classify_program(observation)
    if status is not Classification.EXECUTABLE:
        raise TargetNotExecutable(str(program_id), status.value)

    try:
        blockhash = transport.get_latest_blockhash()
        tx = build_noop_transaction(program_id, identity, blockhash)
        result = transport.simulate_transaction(tx)
    except TransportError as exc:
        raise SimulationTransportError(str(program_id), str(exc)) from exc

    logger.debug("simulated %s: err=%s logs=%d", program_id, result.err, len(result.logs))
    return SimulationOutcome(
        program_id=program_id,
        succeeded=result.err is None,
        log_lines=tuple(result.logs),
        error_detail=_error_detail(result.err) if result.err is not None else None,
    )
