"""Run configuration and identity loading."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import tomli_w
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .constants import (
    CLUSTER_URLS,
    DEFAULT_CONCURRENCY,
    DEFAULT_KEYPAIR_PATH,
    DEFAULT_MARKET,
    DEFAULT_NONCE,
    DEFAULT_ROUTER_ID,
    DEFAULT_RPC_URL,
    DEFAULT_SLAB_ID,
    DEFAULT_TIMEOUT,
)
from .errors import ConfigError
from .schema import Roots, SeedSchema, load_schema, reference_schema
from .seeds import coerce_pubkey
from .util import clean, parse_u64

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "pdascope.toml"

# option name -> environment variable
ENV_VARS = {
    "rpc_url": "RPC_URL",
    "router_program_id": "ROUTER_ID",
    "slab_program_id": "SLAB_ID",
    "market": "MARKET",
    "user": "PDASCOPE_USER",
    "mint": "MINT",
    "nonce": "NONCE",
    "payer": "PAYER",
    "enable_simulation": "SIMULATE",
    "concurrency": "PDASCOPE_CONCURRENCY",
    "timeout": "PDASCOPE_TIMEOUT",
    "schema": "PDASCOPE_SCHEMA",
}

# option name -> (table, key) in the config file
FILE_KEYS = {
    "rpc_url": ("cluster", "rpc_url"),
    "payer": ("cluster", "payer"),
    "router_program_id": ("programs", "router"),
    "slab_program_id": ("programs", "slab"),
    "market": ("roots", "market"),
    "user": ("roots", "user"),
    "mint": ("roots", "mint"),
    "nonce": ("roots", "nonce"),
    "enable_simulation": ("inspect", "simulate"),
    "concurrency": ("inspect", "concurrency"),
    "timeout": ("inspect", "timeout"),
    "schema": ("inspect", "schema"),
}


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib  # Python 3.11+
    except ImportError:  # pragma: no cover
        import tomli as tomllib  # type: ignore
    return tomllib.loads(path.read_text())


# Solana CLI config.yml key -> option name
SOLANA_CLI_KEYS = {
    "json_rpc_url": "rpc_url",
    "keypair_path": "payer",
}


def solana_cli_config_path() -> Path:
    path = os.environ.get("SOLANA_CONFIG") or os.environ.get("SOLANA_CONFIG_FILE")
    if path:
        return Path(path).expanduser()
    return Path.home() / ".config" / "solana" / "cli" / "config.yml"


def load_solana_cli_config() -> Dict[str, str]:
    """Pick the RPC URL and keypair path out of the Solana CLI's config.yml.

    Returns option names (``rpc_url``, ``payer``); unrelated keys are ignored.
    """
    try:
        text = solana_cli_config_path().read_text()
    except OSError:
        return {}
    values: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, raw = line.partition(":")
        option = SOLANA_CLI_KEYS.get(key.strip())
        if not sep or option is None:
            continue
        value = clean(raw.strip().strip("\"'"))
        if value and value != "~":
            values[option] = value
    return values


def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off", ""}:
            return False
    raise ConfigError(f"{name} must be a boolean")


@dataclass(frozen=True)
class InspectConfig:
    """Immutable per-run configuration. Invalid values fail at construction."""

    rpc_url: str = DEFAULT_RPC_URL
    router_program_id: Pubkey = field(default_factory=lambda: Pubkey.from_string(DEFAULT_ROUTER_ID))
    slab_program_id: Pubkey = field(default_factory=lambda: Pubkey.from_string(DEFAULT_SLAB_ID))
    market: str = DEFAULT_MARKET
    user: Optional[Pubkey] = None
    mint: Optional[Pubkey] = None
    nonce: int = DEFAULT_NONCE
    payer: str = DEFAULT_KEYPAIR_PATH
    enable_simulation: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    schema_path: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            if not clean(self.rpc_url):
                raise ValueError("rpc_url must not be empty")
            object.__setattr__(self, "rpc_url", CLUSTER_URLS.get(self.rpc_url, self.rpc_url))
            object.__setattr__(
                self, "router_program_id", coerce_pubkey(self.router_program_id, "router_program_id")
            )
            object.__setattr__(
                self, "slab_program_id", coerce_pubkey(self.slab_program_id, "slab_program_id")
            )
            if self.user is not None:
                object.__setattr__(self, "user", coerce_pubkey(self.user, "user"))
            if self.mint is not None:
                object.__setattr__(self, "mint", coerce_pubkey(self.mint, "mint"))
            if not isinstance(self.market, str) or not self.market:
                raise ValueError("market must be a non-empty string")
            object.__setattr__(self, "nonce", parse_u64(self.nonce, "nonce"))
            object.__setattr__(self, "enable_simulation", _parse_bool(self.enable_simulation, "simulate"))
            concurrency = int(self.concurrency)
            if concurrency < 1:
                raise ValueError("concurrency must be >= 1")
            object.__setattr__(self, "concurrency", concurrency)
            timeout = float(self.timeout)
            if timeout <= 0:
                raise ValueError("timeout must be > 0")
            object.__setattr__(self, "timeout", timeout)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    @property
    def programs(self) -> Dict[str, Pubkey]:
        return {"router": self.router_program_id, "slab": self.slab_program_id}

    def roots(self, identity: Keypair | None = None) -> Roots:
        """User and mint default to the identity (mint falls back to user)."""
        user = self.user
        if user is None:
            if identity is None:
                raise ConfigError("user is not configured and no identity is loaded")
            user = identity.pubkey()
        mint = self.mint or user
        return Roots(user=user, mint=mint, market=self.market, nonce=self.nonce)

    def load_schema(self) -> SeedSchema:
        if self.schema_path:
            return load_schema(self.schema_path)
        return reference_schema()

    def with_overrides(self, **overrides: Any) -> "InspectConfig":
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


def _file_values(data: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for option, (table, key) in FILE_KEYS.items():
        section = data.get(table)
        if isinstance(section, dict) and section.get(key) is not None:
            values[option] = section[key]
    return values


def _env_values(env: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for option, var in ENV_VARS.items():
        raw = clean(env.get(var))
        if raw is not None:
            values[option] = raw
    return values


def load_config(
    path: str | Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> InspectConfig:
    """Merge defaults < Solana CLI config < file < environment < overrides."""
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}

    values.update(load_solana_cli_config())

    config_path: Path | None = Path(path).expanduser() if path else None
    if config_path is None and Path(DEFAULT_CONFIG_NAME).exists():
        config_path = Path(DEFAULT_CONFIG_NAME)
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        file_values = _file_values(_load_toml(config_path))
        schema = file_values.get("schema")
        if isinstance(schema, str) and not Path(schema).expanduser().is_absolute():
            file_values["schema"] = str(config_path.parent / schema)
        values.update(file_values)

    values.update(_env_values(env))
    if overrides:
        values.update({key: value for key, value in overrides.items() if value is not None})

    if "schema" in values:
        values["schema_path"] = values.pop("schema")
    return InspectConfig(**values)


def config_to_dict(config: InspectConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "cluster": {"rpc_url": config.rpc_url, "payer": config.payer},
        "programs": {
            "router": str(config.router_program_id),
            "slab": str(config.slab_program_id),
        },
        "roots": {"market": config.market, "nonce": config.nonce},
        "inspect": {
            "simulate": config.enable_simulation,
            "concurrency": config.concurrency,
            "timeout": config.timeout,
        },
    }
    if config.user is not None:
        data["roots"]["user"] = str(config.user)
    if config.mint is not None:
        data["roots"]["mint"] = str(config.mint)
    if config.schema_path:
        data["inspect"]["schema"] = config.schema_path
    return data


def write_config(path: Path, config: InspectConfig) -> None:
    path.write_bytes(tomli_w.dumps(config_to_dict(config)).encode())


def load_identity(path: str | Path | None) -> tuple[Keypair, bool]:
    """Load a JSON keypair file. Returns ``(keypair, ephemeral)``.

    Falls back to a fresh in-memory keypair when no file exists, so PDAs can
    still be derived and simulations still signed.
    """
    candidate = Path(path or DEFAULT_KEYPAIR_PATH).expanduser()
    if candidate.exists():
        try:
            raw = json.loads(candidate.read_text())
            return Keypair.from_bytes(bytes(raw)), False
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Failed to load payer from %s: %s", candidate, exc)
    else:
        logger.warning("No keypair file found at %s; using ephemeral keypair.", candidate)
    return Keypair(), True
