"""Inspection engine: derive, probe, classify and optionally dry-run."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .batch import BatchExecutor
from .config import InspectConfig
from .constants import MEMO_PROGRAM_ID, SYSTEM_PROGRAM_ID
from .errors import SimulationTransportError, TargetNotExecutable
from .probe import probe
from .report import Classification, TopologyReport, build_report, classify_program
from .schema import Roots, SeedSchema, Topology, resolve
from .simulate import SimulationOutcome, SimulationSkipped, simulate
from .transport import LedgerTransport, SolanaRpcTransport

logger = logging.getLogger(__name__)

SANITY_PROGRAMS = (
    ("System", Pubkey.from_string(SYSTEM_PROGRAM_ID)),
    ("Memo", Pubkey.from_string(MEMO_PROGRAM_ID)),
)


@dataclass(frozen=True)
class InspectionRun:
    rpc_url: str
    version: dict[str, Any]
    identity: Pubkey
    ephemeral_identity: bool
    report: TopologyReport
    simulations: tuple[SimulationOutcome | SimulationSkipped, ...] = ()
    elapsed: float = 0.0
    timed_out: bool = False
    errors: tuple[str, ...] = field(default_factory=tuple)


class Inspector:
    """Runs the inspection pipeline for one configuration.

    Runs are serialized: ``run`` holds a lock until every transport call of
    the run has been released.
    """

    def __init__(
        self,
        config: InspectConfig,
        *,
        identity: Keypair,
        ephemeral_identity: bool = False,
        schema: SeedSchema | None = None,
        transport_factory: Callable[[InspectConfig], LedgerTransport] | None = None,
    ) -> None:
        self.config = config
        self.identity = identity
        self.ephemeral_identity = ephemeral_identity
        self.schema = schema or config.load_schema()
        self._transport_factory = transport_factory or _default_transport
        self._transport: LedgerTransport | None = None
        self._lock = asyncio.Lock()

    @property
    def transport(self) -> LedgerTransport:
        if self._transport is None:
            self._transport = self._transport_factory(self.config)
        return self._transport

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # ── Downstream surface ─────────────────────────────────────────

    def derive_topology(
        self,
        roots: Roots | None = None,
        programs: Mapping[str, Any] | None = None,
    ) -> Topology:
        roots = roots or self.config.roots(self.identity)
        programs = programs or self.config.programs
        return resolve(self.schema, roots, programs)

    def program_targets(self) -> list[tuple[str, Pubkey]]:
        return [
            *SANITY_PROGRAMS,
            ("Router", self.config.router_program_id),
            ("Slab", self.config.slab_program_id),
        ]

    async def inspect(
        self,
        topology: Topology,
        *,
        executor: BatchExecutor | None = None,
        timeout: float | None = None,
    ) -> TopologyReport:
        targets = self.program_targets()
        addresses = [address for _, address in targets]
        addresses.extend(derived.pubkey for _, derived in topology.items())
        timeout = self.config.timeout if timeout is None else timeout
        if executor is None:
            async with BatchExecutor(self.config.concurrency) as scoped:
                results = await probe(self.transport, addresses, executor=scoped, timeout=timeout)
        else:
            results = await probe(self.transport, addresses, executor=executor, timeout=timeout)
        return build_report(topology, results, targets)

    async def probe_executability(self, program_id: Pubkey) -> Classification:
        async with BatchExecutor(1) as executor:
            results = await probe(
                self.transport, [program_id], executor=executor, timeout=self.config.timeout
            )
        return classify_program(results[program_id])

    async def dry_run(
        self,
        program_id: Pubkey,
        identity: Keypair | None = None,
        *,
        report: TopologyReport | None = None,
    ) -> SimulationOutcome:
        """Simulate a no-op against ``program_id``.

        Uses the program's observation from ``report`` when given, otherwise
        probes it first. Raises TargetNotExecutable for anything that is not
        an executable program.
        """
        identity = identity or self.identity
        observation = None
        if report is not None:
            for presence in report.programs:
                if presence.address == program_id:
                    observation = presence.result
        async with BatchExecutor(1) as executor:
            if observation is None:
                results = await probe(
                    self.transport, [program_id], executor=executor, timeout=self.config.timeout
                )
                observation = results[program_id]
            return await executor.call(simulate, self.transport, program_id, identity, observation)

    # ── Pipeline ───────────────────────────────────────────────────

    async def _simulate_all(
        self,
        report: TopologyReport,
        executor: BatchExecutor,
        timeout: float,
    ) -> list[SimulationOutcome | SimulationSkipped]:
        outcomes: dict[Pubkey, SimulationOutcome | SimulationSkipped] = {}
        runnable: dict[Pubkey, Any] = {}
        order: list[Pubkey] = []
        for label in ("Router", "Slab"):
            presence = report.program(label)
            if presence is None:
                continue
            order.append(presence.address)
            if presence.executable:
                runnable[presence.address] = presence.result
            else:
                outcomes[presence.address] = SimulationSkipped(
                    presence.address,
                    f"{label} not found or not executable ({presence.classification})",
                )

        if runnable:
            results, errors, pending = await executor.map(
                lambda address: simulate(self.transport, address, self.identity, runnable[address]),
                list(runnable),
                timeout=max(timeout, 0.0),
            )
            for address in runnable:
                if address in results:
                    outcomes[address] = results[address]
                elif address in errors:
                    exc = errors[address]
                    if isinstance(exc, (TargetNotExecutable, SimulationTransportError)):
                        reason = str(exc)
                    else:
                        reason = f"simulate failed: {exc}"
                    outcomes[address] = SimulationSkipped(address, reason)
                else:
                    outcomes[address] = SimulationSkipped(address, "simulation timed out")
        return [outcomes[address] for address in order]

    async def run(self, *, simulate_programs: bool | None = None) -> InspectionRun:
        """Derive the topology, probe it and optionally dry-run both programs.

        Schema errors propagate; transport problems are recorded in the
        returned run. A run-level timeout yields partial results.
        """
        simulate_programs = self.config.enable_simulation if simulate_programs is None else simulate_programs
        async with self._lock:
            started = time.monotonic()
            deadline = started + self.config.timeout
            topology = self.derive_topology()
            errors: list[str] = []

            transport = self.transport
            with transport.bounded(deadline):
                async with BatchExecutor(self.config.concurrency) as executor:
                    version: dict[str, Any] = {}
                    version_task = asyncio.ensure_future(executor.call(transport.get_version))
                    report = await self.inspect(
                        topology, executor=executor, timeout=max(deadline - time.monotonic(), 0.0)
                    )
                    simulations: list[SimulationOutcome | SimulationSkipped] = []
                    if simulate_programs:
                        simulations = await self._simulate_all(
                            report, executor, deadline - time.monotonic()
                        )
                    try:
                        version = await asyncio.wait_for(
                            version_task, timeout=max(deadline - time.monotonic(), 0.0)
                        )
                    except asyncio.TimeoutError:
                        errors.append("getVersion timed out")
                    except Exception as exc:
                        logger.warning("getVersion failed: %s", exc)
                        errors.append(f"getVersion failed: {exc}")
                    timed_out = time.monotonic() >= deadline

            elapsed = time.monotonic() - started
            logger.info("inspection finished in %.2fs (timed_out=%s)", elapsed, timed_out)
            return InspectionRun(
                rpc_url=self.config.rpc_url,
                version=version,
                identity=self.identity.pubkey(),
                ephemeral_identity=self.ephemeral_identity,
                report=report,
                simulations=tuple(simulations),
                elapsed=elapsed,
                timed_out=timed_out,
                errors=tuple(errors),
            )


def _default_transport(config: InspectConfig) -> LedgerTransport:
    return SolanaRpcTransport(config.rpc_url, timeout=min(config.timeout, 10.0))
