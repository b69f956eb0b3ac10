"""Topology reports and per-account classification."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Sequence

from solders.pubkey import Pubkey

from .probe import AccountObservation, ProbeFailed, ProbeResult
from .schema import Topology


class Classification(str, Enum):
    MATCHES_OWNER = "matches expected owner"
    ABSENT = "absent"
    OWNER_MISMATCH = "owner mismatch"
    UNEXPECTEDLY_EXECUTABLE = "unexpectedly executable"
    EXECUTABLE = "executable program"
    NOT_EXECUTABLE = "non-executable account"
    PROBE_FAILED = "probe failed"

    @property
    def category(self) -> str:
        """ok, operational (not created yet), configuration or transport."""
        return _CATEGORIES[self]

    def __str__(self) -> str:
        return self.value


_CATEGORIES = {
    Classification.MATCHES_OWNER: "ok",
    Classification.EXECUTABLE: "ok",
    Classification.ABSENT: "operational",
    Classification.NOT_EXECUTABLE: "configuration",
    Classification.OWNER_MISMATCH: "configuration",
    Classification.UNEXPECTEDLY_EXECUTABLE: "configuration",
    Classification.PROBE_FAILED: "transport",
}


def classify_node(result: ProbeResult, expected_owner: Pubkey | None) -> Classification:
    if isinstance(result, ProbeFailed):
        return Classification.PROBE_FAILED
    if not result.exists:
        return Classification.ABSENT
    if result.executable:
        return Classification.UNEXPECTEDLY_EXECUTABLE
    if expected_owner is not None and result.owner != expected_owner:
        return Classification.OWNER_MISMATCH
    return Classification.MATCHES_OWNER


def classify_program(result: ProbeResult) -> Classification:
    if isinstance(result, ProbeFailed):
        return Classification.PROBE_FAILED
    if not result.exists:
        return Classification.ABSENT
    if result.executable:
        return Classification.EXECUTABLE
    return Classification.NOT_EXECUTABLE


@dataclass(frozen=True)
class ProgramPresence:
    label: str
    address: Pubkey
    result: ProbeResult
    classification: Classification

    @property
    def executable(self) -> bool:
        return self.classification is Classification.EXECUTABLE


@dataclass(frozen=True)
class TopologyReport:
    topology: Topology
    observations: Mapping[str, ProbeResult]
    classifications: Mapping[str, Classification]
    programs: tuple[ProgramPresence, ...] = ()

    def program(self, label: str) -> ProgramPresence | None:
        for presence in self.programs:
            if presence.label == label:
                return presence
        return None

    def observation(self, node: str) -> AccountObservation | None:
        result = self.observations.get(node)
        return result if isinstance(result, AccountObservation) else None

    def categories(self) -> Dict[str, int]:
        counts = Counter(c.category for c in self.classifications.values())
        counts.update(p.classification.category for p in self.programs)
        return dict(counts)

    @property
    def has_transport_failures(self) -> bool:
        return self.categories().get("transport", 0) > 0


def build_report(
    topology: Topology,
    results: Mapping[Pubkey, ProbeResult],
    program_targets: Sequence[tuple[str, Pubkey]] = (),
) -> TopologyReport:
    observations: Dict[str, ProbeResult] = {}
    classifications: Dict[str, Classification] = {}
    for name, derived in topology.items():
        address = derived.pubkey
        result = results.get(address) or ProbeFailed(address, "not probed")
        expected_owner = Pubkey(derived.program_id) if derived.program_id else None
        observations[name] = result
        classifications[name] = classify_node(result, expected_owner)

    programs = []
    for label, address in program_targets:
        result = results.get(address) or ProbeFailed(address, "not probed")
        programs.append(ProgramPresence(label, address, result, classify_program(result)))

    return TopologyReport(
        topology=topology,
        observations=MappingProxyType(observations),
        classifications=MappingProxyType(classifications),
        programs=tuple(programs),
    )
