"""
token_ledger.config
-------------------

Configuration for the token ledger and its deployment tooling:

- Token metadata: name, symbol, decimals.
- Network profile: name, RPC endpoint, chain id. Only the deployment tooling
  reads it; ledger semantics never depend on it.
- Role holders for production deployments.
- Log level for the CLI.

The loader supports an optional YAML/JSON file and environment variables.
Precedence (highest first): environment, file, built-in defaults.

ENV overrides (all optional; examples shown as defaults):
  TOKEN_LEDGER_NAME=TestERC20
  TOKEN_LEDGER_SYMBOL=TE20
  TOKEN_LEDGER_DECIMALS=18
  TOKEN_LEDGER_NETWORK=hardhat
  TOKEN_LEDGER_RPC_URL=http://127.0.0.1:8545
  TOKEN_LEDGER_CHAIN_ID=31337
  TOKEN_LEDGER_LOG_LEVEL=INFO
  DEFAULT_ADMIN_ADDRESS=0x...              # required on mainnet
  MINTER_ADDRESS=0x...                     # required on mainnet
  BURNER_ADDRESS=0x...                     # required on mainnet

File layout (YAML shown):

  token:   {name: TestERC20, symbol: TE20, decimals: 18}
  network: {name: mainnet, rpc_url: https://..., chain_id: 1}
  roles:   {admin: 0x..., minter: 0x..., burner: 0x...}
  log_level: INFO
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .address import normalize_address
from .errors import ConfigError

log = logging.getLogger(__name__)

# --------- Helpers -----------------------------------------------------------

PRODUCTION_NETWORKS = frozenset({"mainnet"})

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _env(name: str) -> Optional[str]:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return None
    return val.strip()


def _env_int(name: str, default: int) -> int:
    val = _env(name)
    if val is None:
        return default
    try:
        return int(val, 0)
    except ValueError:
        raise ConfigError(f"{name} must be an integer", context={"value": val}) from None


# --------- Dataclasses -------------------------------------------------------


@dataclass(frozen=True)
class TokenConfig:
    name: str = "TestERC20"
    symbol: str = "TE20"
    decimals: int = 18

    def validate(self) -> None:
        if not self.name or len(self.name) > 64:
            raise ConfigError("token.name must be 1..64 characters")
        if not self.symbol or len(self.symbol) > 11:
            raise ConfigError("token.symbol must be 1..11 characters")
        if not isinstance(self.decimals, int) or not 0 <= self.decimals <= 255:
            raise ConfigError("token.decimals must fit a uint8")


@dataclass(frozen=True)
class NetworkConfig:
    name: str = "hardhat"
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = 31337

    def validate(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ConfigError("network.name must be a non-empty string", context={"value": self.name})
        if isinstance(self.chain_id, bool) or not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise ConfigError("network.chain_id must be a positive integer", context={"value": self.chain_id})

    @property
    def is_production(self) -> bool:
        return self.name in PRODUCTION_NETWORKS


@dataclass(frozen=True)
class RoleAddresses:
    """Explicit role holders. Unset entries resolve to account 0 off-mainnet."""

    admin: Optional[str] = None
    minter: Optional[str] = None
    burner: Optional[str] = None

    def validate(self) -> None:
        for label, value in (("admin", self.admin), ("minter", self.minter), ("burner", self.burner)):
            if value is None:
                continue
            try:
                normalize_address(value)
            except ValueError as exc:
                raise ConfigError(f"roles.{label} is not an address", context={"value": value}) from exc


@dataclass(frozen=True)
class LedgerConfig:
    token: TokenConfig = field(default_factory=TokenConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    roles: RoleAddresses = field(default_factory=RoleAddresses)
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> None:
        self.token.validate()
        self.network.validate()
        self.roles.validate()
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError("log_level is not a logging level", context={"value": self.log_level})


# --------- Loading -----------------------------------------------------------


def _roles_mapping(raw: Any) -> Any:
    # unquoted 0x... scalars load from YAML as ints
    if not isinstance(raw, dict):
        return raw
    return {
        k: f"0x{v:040x}" if isinstance(v, int) and not isinstance(v, bool) and v >= 0 else v
        for k, v in raw.items()
    }


def _from_mapping(m: Dict[str, Any]) -> LedgerConfig:
    try:
        return LedgerConfig(
            token=TokenConfig(**(m.get("token") or {})),
            network=NetworkConfig(**(m.get("network") or {})),
            roles=RoleAddresses(**(_roles_mapping(m.get("roles")) or {})),
            log_level=str(m.get("log_level", "INFO")),
        )
    except TypeError as exc:
        raise ConfigError(f"unknown config key: {exc}") from exc


def _apply_env(base: LedgerConfig) -> LedgerConfig:
    b = base
    token = TokenConfig(
        name=_env("TOKEN_LEDGER_NAME") or b.token.name,
        symbol=_env("TOKEN_LEDGER_SYMBOL") or b.token.symbol,
        decimals=_env_int("TOKEN_LEDGER_DECIMALS", b.token.decimals),
    )
    network = NetworkConfig(
        name=_env("TOKEN_LEDGER_NETWORK") or b.network.name,
        rpc_url=_env("TOKEN_LEDGER_RPC_URL") or b.network.rpc_url,
        chain_id=_env_int("TOKEN_LEDGER_CHAIN_ID", b.network.chain_id),
    )
    roles = RoleAddresses(
        admin=_env("DEFAULT_ADMIN_ADDRESS") or b.roles.admin,
        minter=_env("MINTER_ADDRESS") or b.roles.minter,
        burner=_env("BURNER_ADDRESS") or b.roles.burner,
    )
    log_level = (_env("TOKEN_LEDGER_LOG_LEVEL") or b.log_level).upper()
    return replace(b, token=token, network=network, roles=roles, log_level=log_level)


def load_config(path: Optional[Union[str, Path]] = None) -> LedgerConfig:
    """
    Load configuration from (in order of precedence):
      1) Environment variables (see header).
      2) File at `path` (YAML/JSON), if provided.
      3) Built-in defaults.
    """
    cfg = LedgerConfig()
    if path is not None:
        p = Path(path)
        if not p.is_file():
            raise ConfigError("config file not found", context={"path": str(p)})
        text = p.read_text(encoding="utf-8")
        try:
            if p.suffix.lower() in {".yml", ".yaml"}:
                data = yaml.safe_load(text) or {}
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError("config file is not valid YAML/JSON", context={"path": str(p)}) from exc
        if not isinstance(data, dict):
            raise ConfigError("config file must contain a mapping", context={"path": str(p)})
        cfg = _from_mapping(data)
        log.debug("loaded config file %s", p)
    cfg = _apply_env(cfg)
    cfg.validate()
    return cfg


__all__ = [
    "TokenConfig",
    "NetworkConfig",
    "RoleAddresses",
    "LedgerConfig",
    "PRODUCTION_NETWORKS",
    "load_config",
]
