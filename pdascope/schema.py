"""Seed schemas: the protocol's address graph as data."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from solders.pubkey import Pubkey

from .derive import DerivedAddress, derive
from .errors import CyclicSchema, SchemaError, UnknownNode, UnknownProgram, UnresolvedRoot
from .seeds import SeedSpec, coerce_pubkey, parse_seed_spec
from .util import parse_u64

# Seed layout of the Percolator router/slab accounts.
_REFERENCE_SCHEMA = """
[schema]
name = "percolator"
version = 1

[[nodes]]
name = "vault"
label = "Vault PDA"
program = "router"
seeds = ["string:vault", "pubkey:$mint"]

[[nodes]]
name = "escrow"
label = "Escrow PDA"
program = "router"
seeds = ["string:escrow", "pubkey:$user", "node:slab_state", "pubkey:$mint"]

[[nodes]]
name = "cap"
label = "Cap PDA"
program = "router"
seeds = ["string:cap", "pubkey:$user", "node:slab_state", "pubkey:$mint", "u64le:$nonce"]

[[nodes]]
name = "portfolio"
label = "Portfolio PDA"
program = "router"
seeds = ["string:portfolio", "pubkey:$user"]

[[nodes]]
name = "registry"
label = "Registry PDA"
program = "router"
seeds = ["string:registry"]

[[nodes]]
name = "slab_state"
label = "Slab State PDA"
program = "slab"
seeds = ["string:slab", "string:$market"]

[[nodes]]
name = "authority"
label = "Authority PDA"
program = "slab"
seeds = ["string:authority", "node:slab_state"]
""".lstrip()


def _load_toml_text(text: str) -> Dict[str, Any]:
    try:
        import tomllib  # Python 3.11+
    except ImportError:  # pragma: no cover
        import tomli as tomllib  # type: ignore
    return tomllib.loads(text)


@dataclass(frozen=True)
class DerivationNode:
    name: str
    program: str
    seeds: tuple[SeedSpec, ...]
    label: str = ""

    @property
    def depends_on(self) -> tuple[str, ...]:
        return tuple(spec.upstream for spec in self.seeds if spec.upstream)

    @property
    def roots(self) -> tuple[str, ...]:
        return tuple(spec.root for spec in self.seeds if spec.root)

    @property
    def display(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class SeedSchema:
    name: str
    nodes: tuple[DerivationNode, ...]
    version: int = 1

    def node(self, name: str) -> DerivationNode:
        for node in self.nodes:
            if node.name == name:
                return node
        raise UnknownNode(f"schema '{self.name}' has no node '{name}'")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(node.name for node in self.nodes)

    @property
    def roots(self) -> tuple[str, ...]:
        seen: List[str] = []
        for node in self.nodes:
            for root in node.roots:
                if root not in seen:
                    seen.append(root)
        return tuple(seen)


@dataclass(frozen=True)
class Roots:
    """Root identifiers a schema is evaluated against."""

    user: Pubkey
    mint: Pubkey
    market: str
    nonce: int = 1
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "user", coerce_pubkey(self.user, "user"))
        object.__setattr__(self, "mint", coerce_pubkey(self.mint, "mint"))
        if not isinstance(self.market, str):
            raise ValueError("market must be a string")
        object.__setattr__(self, "nonce", parse_u64(self.nonce, "nonce"))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def as_mapping(self) -> Dict[str, Any]:
        values: Dict[str, Any] = dict(self.extra)
        values.update(user=self.user, mint=self.mint, market=self.market, nonce=self.nonce)
        return values


@dataclass(frozen=True)
class Topology:
    """All derived addresses for one set of roots."""

    schema: SeedSchema
    addresses: Mapping[str, DerivedAddress]
    order: tuple[str, ...]
    programs: Mapping[str, Pubkey]
    roots: Mapping[str, Any]

    def __getitem__(self, name: str) -> DerivedAddress:
        return self.addresses[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def __len__(self) -> int:
        return len(self.order)

    def items(self) -> List[tuple[str, DerivedAddress]]:
        return [(name, self.addresses[name]) for name in self.order]

    def label(self, name: str) -> str:
        return self.schema.node(name).display


# ── Loading ────────────────────────────────────────────────────────


def parse_schema(data: Dict[str, Any]) -> SeedSchema:
    meta = data.get("schema") if isinstance(data.get("schema"), dict) else {}
    name = meta.get("name", "custom")
    if not isinstance(name, str) or not name:
        raise SchemaError("schema.name must be a non-empty string")
    version = meta.get("version", 1)
    if not isinstance(version, int):
        raise SchemaError("schema.version must be an integer")

    raw_nodes = data.get("nodes")
    if not isinstance(raw_nodes, list) or not raw_nodes:
        raise SchemaError("schema must declare at least one [[nodes]] entry")

    nodes: List[DerivationNode] = []
    seen: set[str] = set()
    for idx, item in enumerate(raw_nodes, start=1):
        if not isinstance(item, dict):
            raise SchemaError(f"node {idx} must be a table")
        node_name = item.get("name")
        if not isinstance(node_name, str) or not node_name:
            raise SchemaError(f"node {idx} is missing a name")
        if node_name in seen:
            raise SchemaError(f"duplicate node name '{node_name}'")
        seen.add(node_name)
        program = item.get("program")
        if not isinstance(program, str) or not program:
            raise SchemaError(f"node '{node_name}' is missing a program")
        raw_seeds = item.get("seeds", [])
        if not isinstance(raw_seeds, list):
            raise SchemaError(f"node '{node_name}' seeds must be a list")
        label = item.get("label", "")
        nodes.append(
            DerivationNode(
                name=node_name,
                program=program,
                seeds=tuple(parse_seed_spec(text) for text in raw_seeds),
                label=label if isinstance(label, str) else "",
            )
        )
    return SeedSchema(name=name, nodes=tuple(nodes), version=version)


def load_schema(path: str | Path) -> SeedSchema:
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    return parse_schema(_load_toml_text(path.read_text()))


def reference_schema() -> SeedSchema:
    return parse_schema(_load_toml_text(_REFERENCE_SCHEMA))


def compare_schema(schema: SeedSchema, reference: SeedSchema) -> List[str]:
    """List the differences between ``schema`` and a known-good reference."""
    diffs: List[str] = []
    for ref_node in reference.nodes:
        if ref_node.name not in schema.names:
            diffs.append(f"missing node '{ref_node.name}'")
            continue
        node = schema.node(ref_node.name)
        if node.program != ref_node.program:
            diffs.append(f"{node.name}: program '{node.program}' != '{ref_node.program}'")
        ours = [str(spec) for spec in node.seeds]
        theirs = [str(spec) for spec in ref_node.seeds]
        if ours != theirs:
            diffs.append(f"{node.name}: seeds {ours} != {theirs}")
    for node in schema.nodes:
        if node.name not in reference.names:
            diffs.append(f"extra node '{node.name}'")
    return diffs


# ── Evaluation ─────────────────────────────────────────────────────


def topological_order(schema: SeedSchema) -> tuple[str, ...]:
    """Dependency order, breaking ties by declaration order."""
    names = schema.names
    for node in schema.nodes:
        for upstream in node.depends_on:
            if upstream not in names:
                raise UnknownNode(f"node '{node.name}' depends on unknown node '{upstream}'")

    remaining = {node.name: set(node.depends_on) for node in schema.nodes}
    order: List[str] = []
    while remaining:
        ready = [name for name in names if name in remaining and not remaining[name]]
        if not ready:
            raise CyclicSchema(sorted(remaining))
        for name in ready:
            del remaining[name]
            order.append(name)
        for deps in remaining.values():
            deps.difference_update(ready)
    return tuple(order)


def _resolve_program(node: DerivationNode, programs: Mapping[str, Any]) -> Pubkey:
    if node.program in programs:
        return coerce_pubkey(programs[node.program], f"program '{node.program}'")
    try:
        return coerce_pubkey(node.program, node.program)
    except ValueError as exc:
        raise UnknownProgram(
            f"node '{node.name}' uses program '{node.program}' which is neither configured nor a pubkey"
        ) from exc


def resolve(
    schema: SeedSchema,
    roots: Roots | Mapping[str, Any],
    programs: Mapping[str, Any],
) -> Topology:
    """Evaluate every node of ``schema`` against ``roots``.

    All schema-level problems (cycles, unknown nodes or programs, missing
    roots) are raised before the first derivation.
    """
    root_values: Dict[str, Any] = roots.as_mapping() if isinstance(roots, Roots) else dict(roots)
    order = topological_order(schema)

    node_programs: Dict[str, Pubkey] = {}
    for name in order:
        node = schema.node(name)
        for root in node.roots:
            if root_values.get(root) is None:
                raise UnresolvedRoot(name, root)
        node_programs[name] = _resolve_program(node, programs)

    derived: Dict[str, DerivedAddress] = {}
    derived_bytes: Dict[str, bytes] = {}
    for name in order:
        node = schema.node(name)
        components = [spec.bind(root_values, derived_bytes) for spec in node.seeds]
        result = derive(node_programs[name], components, node=name)
        derived[name] = result
        derived_bytes[name] = result.address

    resolved_programs: Dict[str, Pubkey] = {}
    for alias, value in programs.items():
        resolved_programs[alias] = coerce_pubkey(value, f"program '{alias}'")
    return Topology(
        schema=schema,
        addresses=MappingProxyType(derived),
        order=order,
        programs=MappingProxyType(resolved_programs),
        roots=MappingProxyType(root_values),
    )
