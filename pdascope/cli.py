"""CLI entrypoint for pdascope."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG_NAME, InspectConfig, load_config, load_identity, write_config
from .engine import Inspector
from .errors import PdascopeError, TargetNotExecutable
from .render import run_dict, run_lines, schema_lines, simulation_lines, topology_dict, topology_lines
from .schema import compare_schema, reference_schema
from .seeds import coerce_pubkey


def _config_from_args(args: argparse.Namespace) -> InspectConfig:
    overrides = {
        "rpc_url": getattr(args, "rpc_url", None),
        "router_program_id": getattr(args, "router", None),
        "slab_program_id": getattr(args, "slab", None),
        "market": getattr(args, "market", None),
        "user": getattr(args, "user", None),
        "mint": getattr(args, "mint", None),
        "nonce": getattr(args, "nonce", None),
        "payer": getattr(args, "payer", None),
        "concurrency": getattr(args, "concurrency", None),
        "timeout": getattr(args, "timeout", None),
        "schema": getattr(args, "schema", None),
    }
    if getattr(args, "simulate", False):
        overrides["enable_simulation"] = True
    return load_config(getattr(args, "config", None), overrides=overrides)


def _build_inspector(args: argparse.Namespace) -> Inspector:
    config = _config_from_args(args)
    identity, ephemeral = load_identity(config.payer)
    return Inspector(config, identity=identity, ephemeral_identity=ephemeral)


def _cmd_derive(args: argparse.Namespace) -> int:
    inspector = _build_inspector(args)
    topology = inspector.derive_topology()
    if args.json:
        print(json.dumps(topology_dict(topology), indent=2))
        return 0
    roots = topology.roots
    print(f"USER   : {roots.get('user')}")
    print(f"MINT   : {roots.get('mint')}")
    print(f"MARKET : {roots.get('market')}")
    print(f"NONCE  : {roots.get('nonce')}")
    for alias, program in topology.programs.items():
        print(f"{alias.capitalize():<7}: {program}")
    print("")
    for line in topology_lines(topology):
        print(line)
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    inspector = _build_inspector(args)
    run = asyncio.run(inspector.run())
    if args.json:
        print(json.dumps(run_dict(run), indent=2))
    else:
        for line in run_lines(run):
            print(line)
    if args.strict and run.report.categories().keys() - {"ok"}:
        return 2
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    inspector = _build_inspector(args)
    name = args.program.lower()
    if name in inspector.config.programs:
        target = inspector.config.programs[name]
        label = name.capitalize()
    else:
        target = coerce_pubkey(args.program, "program")
        label = args.program
    try:
        outcome = asyncio.run(inspector.dry_run(target))
    except TargetNotExecutable as exc:
        print(f"Skipping {label} simulate ({exc}).")
        return 1
    for line in simulation_lines(outcome, label):
        print(line)
    return 0 if outcome.succeeded else 1


def _cmd_schema_show(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    schema = config.load_schema()
    for line in schema_lines(schema):
        print(line)
    if args.check:
        diffs = compare_schema(schema, reference_schema())
        if diffs:
            print("Differences from reference schema:")
            for diff in diffs:
                print(f"  - {diff}")
            return 1
        print("Schema matches reference.")
    return 0


def _cmd_config_init(args: argparse.Namespace) -> int:
    out_path = Path(args.out) if args.out else Path(DEFAULT_CONFIG_NAME)
    if out_path.exists() and not args.force:
        raise ValueError(f"{out_path} already exists (use --force to overwrite)")
    config = _config_from_args(args)
    write_config(out_path, config)
    print(f"Wrote config: {out_path}")
    return 0


def _cmd_dashboard(args: argparse.Namespace) -> int:
    from .tui import launch_dashboard

    inspector = _build_inspector(args)
    return launch_dashboard(inspector, interval=args.interval, auto_refresh=args.auto_refresh)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help=f"Config file (default: ./{DEFAULT_CONFIG_NAME} if present)")
    p.add_argument("--rpc-url", "--rpc", "-r", dest="rpc_url", help="RPC URL or cluster name")
    p.add_argument("--router", help="Override Router program ID")
    p.add_argument("--slab", help="Override Slab program ID")
    p.add_argument("--market", help="Market string for the slab PDA (default BTC-PERP)")
    p.add_argument("--user", help="USER pubkey for PDAs (default payer)")
    p.add_argument("--mint", help="MINT pubkey for PDAs (default USER)")
    p.add_argument("--nonce", help="Cap nonce (u64, default 1)")
    p.add_argument("--payer", help="Path to keypair JSON")
    p.add_argument("--schema", help="Seed schema TOML (default: built-in Percolator schema)")
    p.add_argument("--concurrency", type=int, help="Maximum parallel RPC reads")
    p.add_argument("--timeout", type=float, help="Run timeout in seconds")
    p.add_argument("--verbose", "-v", action="store_true")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog=os.path.basename(sys.argv[0]))
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_derive = sub.add_parser("derive", help="Derive the PDA topology (no network)")
    _add_common(p_derive)
    p_derive.add_argument("--json", action="store_true", help="Emit JSON")
    p_derive.set_defaults(func=_cmd_derive)

    p_inspect = sub.add_parser("inspect", help="Probe programs and derived accounts")
    _add_common(p_inspect)
    p_inspect.add_argument("--simulate", "-s", action="store_true", help="Simulate a no-op invoke (no SOL spent)")
    p_inspect.add_argument("--json", action="store_true", help="Emit JSON")
    p_inspect.add_argument("--strict", action="store_true", help="Exit 2 unless every account checks out")
    p_inspect.set_defaults(func=_cmd_inspect)

    p_simulate = sub.add_parser("simulate", help="Simulate a no-op invoke against one program")
    _add_common(p_simulate)
    p_simulate.add_argument("program", help="'router', 'slab' or a program pubkey")
    p_simulate.set_defaults(func=_cmd_simulate)

    p_schema = sub.add_parser("schema", help="Seed schema helpers")
    p_schema_sub = p_schema.add_subparsers(dest="schema_cmd", required=True)
    p_schema_show = p_schema_sub.add_parser("show", help="Print the active seed schema")
    _add_common(p_schema_show)
    p_schema_show.add_argument("--check", action="store_true", help="Compare against the reference schema")
    p_schema_show.set_defaults(func=_cmd_schema_show)

    p_config = sub.add_parser("config", help="Config helpers")
    p_config_sub = p_config.add_subparsers(dest="config_cmd", required=True)
    p_config_init = p_config_sub.add_parser("init", help="Write a starter config file")
    _add_common(p_config_init)
    p_config_init.add_argument("--out", help=f"Output path (default: {DEFAULT_CONFIG_NAME})")
    p_config_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    p_config_init.add_argument("--simulate", action="store_true", help="Enable simulation by default")
    p_config_init.set_defaults(func=_cmd_config_init)

    p_dash = sub.add_parser("dashboard", help="Live terminal dashboard")
    _add_common(p_dash)
    p_dash.add_argument("--interval", type=float, default=2.0, help="Auto-refresh interval in seconds")
    p_dash.add_argument("--auto-refresh", action="store_true", help="Start with auto-refresh enabled")
    p_dash.add_argument("--simulate", "-s", action="store_true", help="Simulate on each refresh")
    p_dash.set_defaults(func=_cmd_dashboard)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (PdascopeError, FileNotFoundError, ValueError) as exc:
        print(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
