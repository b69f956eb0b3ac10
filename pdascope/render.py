"""Plain-text and JSON rendering of topologies and inspection runs."""

from __future__ import annotations

from typing import Any, Dict, List

from solders.pubkey import Pubkey

from .engine import InspectionRun
from .probe import ProbeFailed, ProbeResult
from .schema import SeedSchema, Topology, topological_order
from .simulate import SimulationOutcome, SimulationSkipped

_LABEL_WIDTH = 16


def _result_text(result: ProbeResult) -> str:
    if isinstance(result, ProbeFailed):
        return f"probe failed: {result.cause}"
    if not result.exists:
        return "not found"
    return (
        f"owner={result.owner} exec={str(result.executable).lower()} "
        f"data={result.data_length} lamports={result.lamports}"
    )


def topology_lines(topology: Topology) -> List[str]:
    lines = []
    for name, derived in topology.items():
        label = topology.label(name)
        lines.append(f"{label.ljust(_LABEL_WIDTH)}: {derived} (bump={derived.bump})")
    return lines


def schema_lines(schema: SeedSchema) -> List[str]:
    lines = [f"Schema: {schema.name} (version {schema.version})"]
    for node in schema.nodes:
        seeds = ", ".join(str(spec) for spec in node.seeds) or "<none>"
        lines.append(f"  {node.name} [{node.program}]: {seeds}")
    lines.append(f"  order: {' -> '.join(topological_order(schema))}")
    roots = schema.roots
    lines.append(f"  roots: {', '.join(roots) if roots else '<none>'}")
    return lines


def simulation_lines(item: SimulationOutcome | SimulationSkipped, label: str) -> List[str]:
    if isinstance(item, SimulationSkipped):
        return [f"Skipping {label} simulate ({item.reason})."]
    lines = [f"{label} simulate: {'ok' if item.succeeded else 'failed'}"]
    if item.log_lines:
        lines.append(f"{label} logs:")
        lines.extend(f"  {line}" for line in item.log_lines)
    else:
        lines.append(f"{label} logs: <none>")
    if item.error_detail:
        lines.append(f"{label} err : {item.error_detail['type']}: {item.error_detail['message']}")
    return lines


def run_lines(run: InspectionRun) -> List[str]:
    report = run.report
    topology = report.topology
    roots = topology.roots
    lines = [
        f"RPC_URL      : {run.rpc_url}",
        f"RPC version  : {run.version or '<unavailable>'}",
        f"PAYER pubkey : {run.identity}{' (ephemeral)' if run.ephemeral_identity else ''}",
        f"USER  pubkey : {roots.get('user')}",
        f"MINT  pubkey : {roots.get('mint')}",
        f"MARKET       : {roots.get('market')}",
        f"NONCE        : {roots.get('nonce')}",
        "",
        "Program presence:",
    ]
    for presence in report.programs:
        lines.append(f"  {presence.label.ljust(_LABEL_WIDTH)}: {presence.address} -> {presence.classification}")
    lines.append("")
    lines.append("Derived accounts:")
    for name, derived in topology.items():
        label = topology.label(name)
        status = report.classifications[name]
        lines.append(f"  {label.ljust(_LABEL_WIDTH)}: {derived} -> {status}")
        lines.append(f"  {'':{_LABEL_WIDTH}}  {_result_text(report.observations[name])}")
    lines.append("")

    counts = report.categories()
    summary = ", ".join(f"{key}={counts[key]}" for key in sorted(counts))
    lines.append(f"Summary: {summary}")
    if counts.get("configuration"):
        lines.append("  note: owner/executable mismatches point at a wrong program id or seed layout")
    if counts.get("operational"):
        lines.append("  note: absent accounts have not been created on this cluster yet")
    if counts.get("transport"):
        lines.append("  note: some reads failed; the RPC endpoint may be unreachable or rate limiting")
    if run.timed_out:
        lines.append("  note: run timed out; results are partial")
    for error in run.errors:
        lines.append(f"  error: {error}")

    labels = {presence.address: presence.label for presence in report.programs}
    for item in run.simulations:
        lines.append("")
        lines.extend(simulation_lines(item, labels.get(item.program_id, str(item.program_id))))
    return lines


# ── JSON ───────────────────────────────────────────────────────────


def _result_dict(result: ProbeResult) -> Dict[str, Any]:
    if isinstance(result, ProbeFailed):
        return {"probe_failed": True, "cause": result.cause}
    return {
        "exists": result.exists,
        "owner": str(result.owner) if result.owner is not None else None,
        "executable": result.executable if result.exists else None,
        "data_length": result.data_length if result.exists else None,
        "lamports": result.lamports if result.exists else None,
    }


def topology_dict(topology: Topology) -> Dict[str, Any]:
    return {
        name: {
            "label": topology.label(name),
            "address": str(derived),
            "bump": derived.bump,
            "program": str(Pubkey(derived.program_id)) if derived.program_id else None,
        }
        for name, derived in topology.items()
    }


def run_dict(run: InspectionRun) -> Dict[str, Any]:
    report = run.report
    topology = report.topology
    simulations = []
    for item in run.simulations:
        if isinstance(item, SimulationSkipped):
            simulations.append({"program": str(item.program_id), "skipped": True, "reason": item.reason})
        else:
            simulations.append(
                {
                    "program": str(item.program_id),
                    "skipped": False,
                    "succeeded": item.succeeded,
                    "logs": list(item.log_lines),
                    "error": item.error_detail,
                }
            )
    return {
        "rpc": {"url": run.rpc_url, "version": run.version},
        "payer": str(run.identity),
        "ephemeral_payer": run.ephemeral_identity,
        "roots": {key: str(value) if not isinstance(value, int) else value for key, value in topology.roots.items()},
        "programs": [
            {
                "label": presence.label,
                "pubkey": str(presence.address),
                "status": presence.classification.value,
                "category": presence.classification.category,
                **_result_dict(presence.result),
            }
            for presence in report.programs
        ],
        "accounts": [
            {
                "node": name,
                "label": topology.label(name),
                "pubkey": str(derived),
                "bump": derived.bump,
                "status": report.classifications[name].value,
                "category": report.classifications[name].category,
                **_result_dict(report.observations[name]),
            }
            for name, derived in topology.items()
        ],
        "summary": report.categories(),
        "simulations": simulations,
        "elapsed": round(run.elapsed, 3),
        "timed_out": run.timed_out,
        "errors": list(run.errors),
    }
