"""Exception taxonomy for pdascope."""

from __future__ import annotations


class PdascopeError(Exception):
    """Base class for all pdascope errors."""


# ── Derivation ─────────────────────────────────────────────────────


class InvalidSeedLength(PdascopeError):
    """Raised when a seed sequence exceeds the ledger's seed limits."""


class InvalidSeeds(PdascopeError):
    """Raised when a seed sequence hashes to a point on the curve."""


class DerivationExhausted(PdascopeError):
    """Raised when no bump in [0, 255] yields an off-curve address."""

    def __init__(self, program_id: bytes, node: str | None = None) -> None:
        label = f" for node '{node}'" if node else ""
        super().__init__(f"no off-curve bump found{label}")
        self.program_id = program_id
        self.node = node


# ── Schema / configuration ─────────────────────────────────────────


class ConfigError(PdascopeError):
    """Raised when configuration values are missing or malformed."""


class SchemaError(PdascopeError):
    """Raised when a seed schema is malformed."""


class InvalidSeedSpec(SchemaError):
    pass


class UnknownNode(SchemaError):
    pass


class UnknownProgram(SchemaError):
    pass


class CyclicSchema(SchemaError):
    def __init__(self, nodes: list[str]) -> None:
        super().__init__(f"schema dependency cycle among: {', '.join(nodes)}")
        self.nodes = nodes


class UnresolvedRoot(SchemaError):
    def __init__(self, node: str, root: str) -> None:
        super().__init__(f"node '{node}' references root '{root}' which was not supplied")
        self.node = node
        self.root = root


# ── Ledger I/O ─────────────────────────────────────────────────────


class TransportError(PdascopeError):
    """Raised by a transport when a call fails after retries."""


class TargetNotExecutable(PdascopeError):
    def __init__(self, program_id: str, status: str) -> None:
        super().__init__(f"{program_id} is not an executable program ({status})")
        self.program_id = program_id
        self.status = status


class SimulationTransportError(PdascopeError):
    def __init__(self, program_id: str, cause: str) -> None:
        super().__init__(f"simulation of {program_id} failed: {cause}")
        self.program_id = program_id
        self.cause = cause
