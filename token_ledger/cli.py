"""
token-ledger: command-line interface for a locally deployed token ledger.

The deployment (proxy storage, proxy admin, accounts) is kept in a JSON state
file, so each invocation restores it, runs one call through the proxy and
writes it back when the call succeeded.

Global options:
  --state PATH      State file (env TOKEN_LEDGER_STATE, default ./token-ledger.json)
  --config PATH     YAML/JSON config file (see token_ledger.config)

Accounts may be given as 0x-addresses or as indexes into the local accounts
(``0`` is the deployer). Roles may be given by name (ADMIN, MINTER, BURNER)
or as 0x-prefixed bytes32.

Examples:
  token-ledger deploy
  token-ledger mint 1 1000 --from 0
  token-ledger transfer 2 250 --from 1
  token-ledger balance 2
  token-ledger burn-from 1 10 --from 2
  token-ledger events --name Transfer

Failures print the structured error as JSON on stderr and exit with status 1.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer

from .address import Address, normalize_address
from .config import LedgerConfig, TokenConfig, load_config
from .deploy import deploy_token_ledger, write_registry
from .errors import ConfigError, LedgerError
from .proxy import Implementation, ProxyAdmin, TransparentProxy, _as_logic
from .roles import role_from_name

app = typer.Typer(
    name="token-ledger",
    help="Upgradeable role-gated token ledger",
    no_args_is_help=True,
    add_completion=False,
)

log = logging.getLogger(__name__)

DEFAULT_STATE = "token-ledger.json"


class GlobalContext:
    def __init__(self) -> None:
        self.state_path: Path = Path(DEFAULT_STATE)
        self.config: LedgerConfig = LedgerConfig()


_ctx = GlobalContext()


@app.callback()
def main_callback(
    state: Path = typer.Option(
        Path(DEFAULT_STATE),
        "--state",
        help="Path to the JSON state file",
        envvar="TOKEN_LEDGER_STATE",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to a YAML/JSON config file",
    ),
) -> None:
    """Global options shared by every command."""
    try:
        _ctx.config = load_config(config)
    except LedgerError as exc:
        _fail(exc)
    _ctx.state_path = state
    logging.basicConfig(
        level=getattr(logging, _ctx.config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class State:
    def __init__(
        self,
        proxy: TransparentProxy,
        proxy_admin: ProxyAdmin,
        implementation: Implementation,
        accounts: List[Address],
        network: str,
        chain_id: int,
    ) -> None:
        self.proxy = proxy
        self.proxy_admin = proxy_admin
        self.implementation = implementation
        self.accounts = accounts
        self.network = network
        self.chain_id = chain_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "chain_id": self.chain_id,
            "accounts": list(self.accounts),
            "implementation": {"address": self.implementation.address, "name": self.implementation.name},
            "proxy_admin": self.proxy_admin.to_dict(),
            "proxy": self.proxy.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], token_config: TokenConfig) -> "State":
        impl = d["implementation"]
        return cls(
            proxy=TransparentProxy.from_dict(d["proxy"], config=token_config),
            proxy_admin=ProxyAdmin.from_dict(d["proxy_admin"]),
            implementation=Implementation(impl["address"], _as_logic(impl["name"])),
            accounts=list(d.get("accounts") or []),
            network=d.get("network", "hardhat"),
            chain_id=int(d.get("chain_id", 31337)),
        )


def _load_state() -> State:
    path = _ctx.state_path
    if not path.is_file():
        typer.echo(f"Error: no deployment at {path}; run 'token-ledger deploy' first", err=True)
        raise typer.Exit(1)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return State.from_dict(data, _ctx.config.token)
    except LedgerError as exc:
        _fail(exc)
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        _fail(ConfigError(
            "state file is corrupt or incomplete",
            context={"path": str(path), "error": f"{type(exc).__name__}: {exc}"},
        ))
    raise typer.Exit(1)


def _save_state(state: State) -> None:
    path = _ctx.state_path
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    log.debug("state saved to %s", path)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pretty(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _fail(exc: LedgerError) -> None:
    typer.echo(_pretty(exc.to_dict()), err=True)
    raise typer.Exit(1)


def _account(state: State, value: str) -> Address:
    if value.isdigit():
        idx = int(value)
        if idx >= len(state.accounts):
            raise typer.BadParameter(f"no local account #{idx}")
        return state.accounts[idx]
    try:
        return normalize_address(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _role(value: str) -> bytes:
    try:
        return role_from_name(value)
    except ValueError as exc:
        raise typer.BadParameter(f"unknown role {value!r}") from exc


def _call(fn: Callable[[State], Any], *, save: bool = True) -> None:
    state = _load_state()
    try:
        result = fn(state)
    except LedgerError as exc:
        _fail(exc)
        return
    if save:
        _save_state(state)
    if result is not None:
        typer.echo(_pretty(result) if isinstance(result, (dict, list)) else result)


FROM_OPTION = typer.Option("0", "--from", "-f", help="Caller (address or account index)")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def deploy(
    registry: Optional[Path] = typer.Option(None, "--registry", help="Deployments registry directory"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing state file"),
) -> None:
    """Deploy implementation, proxy admin and initialized proxy."""
    if _ctx.state_path.exists() and not force:
        typer.echo(f"Error: {_ctx.state_path} exists (use --force)", err=True)
        raise typer.Exit(1)
    try:
        deployment = deploy_token_ledger(_ctx.config)
        if registry is not None:
            write_registry(deployment, registry)
    except LedgerError as exc:
        _fail(exc)
        return
    state = State(
        proxy=deployment.proxy,
        proxy_admin=deployment.proxy_admin,
        implementation=deployment.implementation,
        accounts=deployment.accounts,
        network=deployment.network,
        chain_id=deployment.chain_id,
    )
    _save_state(state)
    record = deployment.to_record()
    record.pop("timestamp", None)
    typer.echo(_pretty(record))


@app.command()
def info() -> None:
    """Token metadata, total supply and role holders."""

    def _info(state: State) -> Dict[str, Any]:
        token = state.proxy.logic
        return {
            "address": state.proxy.address,
            "implementation": state.proxy.implementation,
            "proxyAdmin": state.proxy_admin.address,
            "name": token.name(),
            "symbol": token.symbol(),
            "decimals": token.decimals(),
            "totalSupply": str(token.total_supply()),
            "roles": {
                "ADMIN": token.role_members(token.DEFAULT_ADMIN_ROLE),
                "MINTER": token.role_members(token.MINTER_ROLE),
                "BURNER": token.role_members(token.BURNER_ROLE),
            },
        }

    _call(_info, save=False)


@app.command()
def balance(account: str = typer.Argument(..., help="Account (address or index)")) -> None:
    """Balance of an account."""
    _call(lambda s: s.proxy.view("balanceOf", _account(s, account)), save=False)


@app.command()
def allowance(owner: str, spender: str) -> None:
    """Remaining allowance of SPENDER over OWNER's tokens."""
    _call(lambda s: s.proxy.view("allowance", _account(s, owner), _account(s, spender)), save=False)


@app.command()
def mint(to: str, amount: int, sender: str = FROM_OPTION) -> None:
    """Create AMOUNT tokens for TO (MINTER role)."""
    _call(lambda s: s.proxy.call(_account(s, sender), "mint", _account(s, to), amount))


@app.command()
def transfer(to: str, amount: int, sender: str = FROM_OPTION) -> None:
    """Move AMOUNT of the caller's tokens to TO."""
    _call(lambda s: s.proxy.call(_account(s, sender), "transfer", _account(s, to), amount))


@app.command()
def approve(spender: str, amount: int, sender: str = FROM_OPTION) -> None:
    """Set SPENDER's allowance over the caller's tokens."""
    _call(lambda s: s.proxy.call(_account(s, sender), "approve", _account(s, spender), amount))


@app.command("transfer-from")
def transfer_from(owner: str, to: str, amount: int, sender: str = FROM_OPTION) -> None:
    """Move AMOUNT from OWNER to TO using the caller's allowance."""
    _call(
        lambda s: s.proxy.call(
            _account(s, sender), "transferFrom", _account(s, owner), _account(s, to), amount
        )
    )


@app.command()
def burn(
    amount: int,
    account: Optional[str] = typer.Option(
        None, "--account", help="Burn from this account instead (BURNER role)"
    ),
    sender: str = FROM_OPTION,
) -> None:
    """Destroy the caller's tokens, or ACCOUNT's tokens with the BURNER role."""
    if account is None:
        _call(lambda s: s.proxy.call(_account(s, sender), "burn(uint256)", amount))
    else:
        _call(
            lambda s: s.proxy.call(
                _account(s, sender), "burn(address,uint256)", _account(s, account), amount
            )
        )


@app.command("burn-from")
def burn_from(account: str, amount: int, sender: str = FROM_OPTION) -> None:
    """Destroy AMOUNT of ACCOUNT's tokens using the caller's allowance."""
    _call(lambda s: s.proxy.call(_account(s, sender), "burnFrom", _account(s, account), amount))


@app.command("grant-role")
def grant_role(role: str, account: str, sender: str = FROM_OPTION) -> None:
    """Grant ROLE to ACCOUNT (caller must hold the role's admin role)."""
    _call(lambda s: s.proxy.call(_account(s, sender), "grantRole", _role(role), _account(s, account)))


@app.command("revoke-role")
def revoke_role(role: str, account: str, sender: str = FROM_OPTION) -> None:
    """Revoke ROLE from ACCOUNT (caller must hold the role's admin role)."""
    _call(lambda s: s.proxy.call(_account(s, sender), "revokeRole", _role(role), _account(s, account)))


@app.command("has-role")
def has_role(role: str, account: str) -> None:
    """Whether ACCOUNT holds ROLE."""
    _call(lambda s: s.proxy.view("hasRole", _role(role), _account(s, account)), save=False)


@app.command()
def events(
    name: Optional[str] = typer.Option(None, "--name", help="Only events with this name"),
    from_index: int = typer.Option(0, "--from-index", help="First log index"),
) -> None:
    """Committed events, oldest first."""

    def _events(state: State) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in state.proxy.events.records(name=name, from_index=from_index)]

    _call(_events, save=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
