"""
deploy.py
=========

Declarative deployment of the token ledger behind a transparent proxy.

What this does
--------------
- Describes a deployment as a *module*: an ordered list of futures
  (contract creations, encoded calls, typed handles) whose arguments may refer
  to accounts and to earlier futures.
- Executes a module on an in-process `LocalNetwork` of deterministic accounts;
  contract addresses derive from (deployer, nonce) so a fresh network always
  yields the same addresses.
- Resolves the role holders: account 0 on every network except ``mainnet``,
  where DEFAULT_ADMIN_ADDRESS / MINTER_ADDRESS / BURNER_ADDRESS must be
  configured (config file or environment).
- Optionally writes a deployments registry file keyed by chain id.

The token ledger module
-----------------------
    implementation = m.contract("TokenLedger")
    proxy_admin    = m.contract("ProxyAdmin", [admin])
    encoded        = m.encode_function_call(implementation, "initialize",
                                            [admin, minter, burner])
    proxy          = m.contract("TransparentProxy",
                                [implementation, proxy_admin, encoded])
    token          = m.contract_at("TokenLedger", proxy)

Usage
-----
    deployment = deploy_token_ledger(load_config())
    token = deployment.token.connect(deployment.accounts[0])
    token.mint(alice, 100)
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .abi import encode_function_call
from .address import Address, contract_address, derive_address, normalize_address
from .config import LedgerConfig
from .errors import DeploymentError, LedgerError
from .proxy import IMPLEMENTATIONS, Implementation, ProxyAdmin, TransparentProxy

log = logging.getLogger(__name__)

__all__ = [
    "AccountFuture",
    "ContractFuture",
    "CallFuture",
    "ContractAtFuture",
    "Module",
    "ModuleBuilder",
    "build_module",
    "token_ledger_module",
    "LocalNetwork",
    "Deployer",
    "Deployment",
    "deploy_token_ledger",
    "write_registry",
]

DEFAULT_ACCOUNTS = 10

# ---------------------------------------------------------------------------
# Futures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountFuture:
    index: int


@dataclass(frozen=True)
class ContractFuture:
    id: str
    contract: str
    args: tuple = ()


@dataclass(frozen=True)
class CallFuture:
    id: str
    target: ContractFuture
    function: str
    args: tuple = ()


@dataclass(frozen=True)
class ContractAtFuture:
    id: str
    contract: str
    at: ContractFuture


Future = Union[ContractFuture, CallFuture, ContractAtFuture]


@dataclass
class Module:
    id: str
    futures: List[Future] = field(default_factory=list)
    results: Dict[str, Future] = field(default_factory=dict)
    parameters: Dict[str, Any] = field(default_factory=dict)


class ModuleBuilder:
    """Records futures in declaration order; nothing runs until deployment."""

    def __init__(self, module_id: str) -> None:
        self._module = Module(module_id)

    @property
    def parameters(self) -> Dict[str, Any]:
        return self._module.parameters

    def _add(self, fut: Future) -> Future:
        if any(f.id == fut.id for f in self._module.futures):
            raise DeploymentError("duplicate future id", context={"id": fut.id})
        self._module.futures.append(fut)
        return fut

    def get_account(self, index: int) -> AccountFuture:
        return AccountFuture(index)

    def contract(self, name: str, args: Sequence[Any] = (), *, id: Optional[str] = None) -> ContractFuture:
        return self._add(ContractFuture(id or name, name, tuple(args)))

    def encode_function_call(
        self, target: ContractFuture, function: str, args: Sequence[Any] = (), *, id: Optional[str] = None
    ) -> CallFuture:
        return self._add(CallFuture(id or f"encode:{target.id}.{function}", target, function, tuple(args)))

    def contract_at(self, name: str, at: ContractFuture, *, id: Optional[str] = None) -> ContractAtFuture:
        return self._add(ContractAtFuture(id or f"{name}At", name, at))


def build_module(module_id: str, fn: Callable[[ModuleBuilder], Dict[str, Future]]) -> Module:
    m = ModuleBuilder(module_id)
    results = fn(m) or {}
    module = m._module
    module.results = dict(results)
    return module


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def _role_param(m: ModuleBuilder, config: LedgerConfig, label: str, env_name: str) -> Union[Address, AccountFuture]:
    if not config.network.is_production:
        return m.get_account(0)
    value = getattr(config.roles, label)
    if not value:
        raise DeploymentError(
            f"{env_name} is required on {config.network.name}",
            context={"parameter": env_name, "network": config.network.name},
        )
    try:
        return normalize_address(value)
    except ValueError as exc:
        raise DeploymentError(f"{env_name} is not an address", context={"value": value}) from exc


def token_ledger_module(config: Optional[LedgerConfig] = None) -> Module:
    config = config or LedgerConfig()

    def _define(m: ModuleBuilder) -> Dict[str, Future]:
        admin = _role_param(m, config, "admin", "DEFAULT_ADMIN_ADDRESS")
        minter = _role_param(m, config, "minter", "MINTER_ADDRESS")
        burner = _role_param(m, config, "burner", "BURNER_ADDRESS")
        m.parameters.update(DEFAULT_ADMIN_ADDRESS=admin, MINTER_ADDRESS=minter, BURNER_ADDRESS=burner)

        implementation = m.contract("TokenLedger")
        proxy_admin = m.contract("ProxyAdmin", [admin])
        encoded = m.encode_function_call(implementation, "initialize", [admin, minter, burner])
        proxy = m.contract("TransparentProxy", [implementation, proxy_admin, encoded])
        token = m.contract_at("TokenLedger", proxy, id="TokenLedgerProxy")
        return {
            "proxy": proxy,
            "token": token,
            "proxy_admin": proxy_admin,
            "implementation": implementation,
        }

    return build_module("TokenLedgerModule", _define)


# ---------------------------------------------------------------------------
# Local network
# ---------------------------------------------------------------------------


class LocalNetwork:
    """Deterministic accounts plus per-deployer nonces for contract addresses."""

    def __init__(self, name: str = "hardhat", chain_id: int = 31337, accounts: int = DEFAULT_ACCOUNTS) -> None:
        self.name = name
        self.chain_id = chain_id
        self.accounts: List[Address] = [derive_address(f"account:{i}") for i in range(accounts)]
        self._nonces: Dict[Address, int] = {}

    def account(self, index: int) -> Address:
        try:
            return self.accounts[index]
        except IndexError:
            raise DeploymentError("no such account", context={"index": index}) from None

    def next_address(self, deployer: Address) -> Address:
        nonce = self._nonces.get(deployer, 0)
        self._nonces[deployer] = nonce + 1
        return contract_address(deployer, nonce)


# ---------------------------------------------------------------------------
# Deployer
# ---------------------------------------------------------------------------


@dataclass
class Deployment:
    module_id: str
    network: str
    chain_id: int
    token: TransparentProxy
    proxy: TransparentProxy
    proxy_admin: ProxyAdmin
    implementation: Implementation
    parameters: Dict[str, Address]
    accounts: List[Address] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        return {
            "module": self.module_id,
            "network": self.network,
            "chainId": self.chain_id,
            "proxy": self.proxy.address,
            "proxyAdmin": self.proxy_admin.address,
            "implementation": {"address": self.implementation.address, "name": self.implementation.name},
            "parameters": dict(self.parameters),
            "timestamp": int(time.time()),
        }


class Deployer:
    """
    Executes a `Module` in declaration order. Contract creation failures
    (including a failing proxy initializer) abort the deployment with
    `DeploymentError`; the underlying ledger error is chained.
    """

    def __init__(self, network: Optional[LocalNetwork] = None, config: Optional[LedgerConfig] = None) -> None:
        self.config = config or LedgerConfig()
        self.network = network or LocalNetwork(self.config.network.name, self.config.network.chain_id)
        self.deployer = self.network.account(0)

    def _resolve(self, value: Any, done: Dict[str, Any]) -> Any:
        if isinstance(value, AccountFuture):
            return self.network.account(value.index)
        if isinstance(value, (ContractFuture, CallFuture, ContractAtFuture)):
            if value.id not in done:
                raise DeploymentError("future used before it was deployed", context={"id": value.id})
            return done[value.id]
        if isinstance(value, (list, tuple)):
            return [self._resolve(v, done) for v in value]
        return value

    def _create(self, fut: ContractFuture, args: List[Any]) -> Any:
        address = self.network.next_address(self.deployer)
        if fut.contract == "ProxyAdmin":
            (owner,) = args
            return ProxyAdmin(owner, address=address)
        if fut.contract == "TransparentProxy":
            implementation, admin, data = (list(args) + [None])[:3]
            admin_address = admin.address if isinstance(admin, ProxyAdmin) else admin
            return TransparentProxy(
                implementation,
                admin_address,
                data,
                address=address,
                deployer=self.deployer,
                config=self.config.token,
            )
        logic = IMPLEMENTATIONS.get(fut.contract)
        if logic is None:
            raise DeploymentError("unknown contract", context={"contract": fut.contract})
        return Implementation(address=address, logic=logic)

    def _run(self, fut: Future, done: Dict[str, Any]) -> Any:
        if isinstance(fut, ContractFuture):
            return self._create(fut, self._resolve(fut.args, done))
        if isinstance(fut, CallFuture):
            target = self._resolve(fut.target, done)
            logic = target.logic if isinstance(target, Implementation) else type(target)
            return encode_function_call(logic, fut.function, self._resolve(fut.args, done))
        if isinstance(fut, ContractAtFuture):
            proxy = self._resolve(fut.at, done)
            expected = IMPLEMENTATIONS.get(fut.contract)
            if not isinstance(proxy, TransparentProxy) or type(proxy.logic) is not expected:
                raise DeploymentError("contract_at target does not implement contract", context={"contract": fut.contract})
            return proxy
        raise DeploymentError("unsupported future", context={"future": repr(fut)})

    def deploy(self, module: Module) -> Dict[str, Any]:
        done: Dict[str, Any] = {}
        log.info("deploying %s on %s (chain %d)", module.id, self.network.name, self.network.chain_id)
        for fut in module.futures:
            try:
                done[fut.id] = self._run(fut, done)
            except DeploymentError:
                raise
            except LedgerError as exc:
                raise DeploymentError(
                    f"{fut.id} failed: {exc.reason}", context={"future": fut.id, "error": exc.to_dict()}
                ) from exc
            result = done[fut.id]
            log.info("  %s -> %s", fut.id, getattr(result, "address", getattr(result, "data", result)))
        return {name: done[f.id] for name, f in module.results.items()}


def deploy_token_ledger(
    config: Optional[LedgerConfig] = None,
    network: Optional[LocalNetwork] = None,
) -> Deployment:
    """Build and execute the token ledger module; returns the deployment."""
    config = config or LedgerConfig()
    deployer = Deployer(network, config)
    module = token_ledger_module(config)
    results = deployer.deploy(module)

    params = {label: deployer._resolve(value, {}) for label, value in module.parameters.items()}
    proxy: TransparentProxy = results["proxy"]

    return Deployment(
        module_id=module.id,
        network=deployer.network.name,
        chain_id=deployer.network.chain_id,
        token=results["token"],
        proxy=proxy,
        proxy_admin=results["proxy_admin"],
        implementation=results["implementation"],
        parameters=params,
        accounts=list(deployer.network.accounts),
    )


# ---------------------------------------------------------------------------
# Registry writer
# ---------------------------------------------------------------------------


def _canonical_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"), allow_nan=False)


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=str(path.parent), delete=False) as tf:
        tf.write(text.encode("utf-8"))
        tf.flush()
        os.fsync(tf.fileno())
        tmp_name = tf.name
    os.replace(tmp_name, path)


def write_registry(deployment: Deployment, registry_dir: Union[str, Path]) -> Path:
    """Merge the deployment into ``<registry_dir>/<chainId>.json``, keyed by module id."""
    reg_path = Path(registry_dir) / f"{deployment.chain_id}.json"
    current: Dict[str, Any] = {}
    if reg_path.is_file():
        try:
            current = json.loads(reg_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise DeploymentError("deployments registry is corrupt", context={"path": str(reg_path)}) from exc
    current[deployment.module_id] = deployment.to_record()
    _atomic_write_text(reg_path, _canonical_json(current))
    log.info("registry updated: %s", reg_path)
    return reg_path
