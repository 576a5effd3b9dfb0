"""
token_ledger.proxy
==================

Transparent proxy and its admin, modelled as an indirection layer in front of
the ledger logic.

- `TransparentProxy` owns the storage (key/value state, event log, lock) at a
  stable address and forwards calls, resolved through the logic class's
  ``ABI``, to the current implementation bound to that storage.
- The proxy's admin can only upgrade; any other call from it is rejected
  with `ProxyDeniedAdminAccess`. Every other caller always reaches the logic.
- `ProxyAdmin` is an owned contract; only its owner may
  `upgrade_and_call`. Upgrading swaps the logic class and keeps the state.

Construction optionally runs an encoded initializer call in the same atomic
step as the proxy setup: if the initializer fails, construction fails and no
proxy exists.

Events (emitted by the proxy / admin address)
---------------------------------------------
- Upgraded(implementation)
- AdminChanged(previous_admin, new_admin)
- OwnershipTransferred(previous_owner, new_owner)

Storage layout
--------------
- ``proxy:implementation`` → registered implementation name
- ``proxy:admin``          → admin address
- ``owner``                → ProxyAdmin owner
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type, Union

from .abi import EncodedCall, encode_function_call, invoke
from .address import ZERO_ADDRESS, Address, normalize_address
from .errors import (InvalidAdmin, InvalidImplementation, OwnableInvalidOwner,
                     OwnableUnauthorizedAccount, ProxyDeniedAdminAccess,
                     UnknownFunction)
from .events import AdminChanged, OwnershipTransferred, Upgraded
from .journal import ContractStorage
from .token import TokenLedger

log = logging.getLogger(__name__)

__all__ = [
    "IMPLEMENTATIONS",
    "register_implementation",
    "Implementation",
    "TransparentProxy",
    "ProxyAdmin",
    "BoundCaller",
    "encode_initialize",
]

K_IMPL = "proxy:implementation"
K_ADMIN = "proxy:admin"
K_OWNER = "owner"

UPGRADE_SIGNATURE = "upgradeToAndCall(address,bytes)"

#: Logic classes addressable by name (deployment modules and persisted
#: proxies refer to implementations by these names).
IMPLEMENTATIONS: Dict[str, Type[Any]] = {}


def register_implementation(cls: Type[Any], name: Optional[str] = None) -> Type[Any]:
    if not isinstance(cls, type) or not getattr(cls, "ABI", None):
        raise InvalidImplementation(cls)
    IMPLEMENTATIONS[name or cls.__name__] = cls
    return cls


register_implementation(TokenLedger)


@dataclass(frozen=True)
class Implementation:
    """A deployed logic module: an address plus the class implementing it."""

    address: Address
    logic: Type[Any]

    @property
    def name(self) -> str:
        for name, cls in IMPLEMENTATIONS.items():
            if cls is self.logic:
                return name
        return self.logic.__name__


def _as_logic(implementation: Union[Implementation, Type[Any], str]) -> Type[Any]:
    if isinstance(implementation, Implementation):
        implementation = implementation.logic
    if isinstance(implementation, str):
        cls = IMPLEMENTATIONS.get(implementation)
        if cls is None:
            raise InvalidImplementation(implementation)
        return cls
    if not isinstance(implementation, type) or not getattr(implementation, "ABI", None):
        raise InvalidImplementation(implementation)
    return implementation


def _logic_name(cls: Type[Any]) -> str:
    for name, registered in IMPLEMENTATIONS.items():
        if registered is cls:
            return name
    raise InvalidImplementation(cls)


class BoundCaller:
    """
    A proxy handle with a fixed caller, so calls read like method calls:

        token = proxy.connect(alice)
        token.transfer(bob, 10)
        token["burn(address,uint256)"](bob, 5)
    """

    def __init__(self, proxy: "TransparentProxy", caller: Address) -> None:
        self._proxy = proxy
        self.caller = normalize_address(caller)

    def __getitem__(self, signature: str) -> Callable[..., Any]:
        def _fn(*args: Any) -> Any:
            return self._proxy.call(self.caller, signature, *args)

        return _fn

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


class TransparentProxy:
    """
    Parameters
    ----------
    implementation : Implementation | type | str
        Logic to forward to (class, deployed handle or registered name).
    admin : Address
        The only account allowed to upgrade (normally a ProxyAdmin address).
    data : EncodedCall, optional
        Initializer run atomically with construction.
    address : Address
        The proxy's stable address; also the emitter of its events.
    deployer : Address
        Caller seen by the initializer.
    logic_kwargs
        Extra keyword arguments passed to the logic class (e.g. ``config``).
    """

    def __init__(
        self,
        implementation: Union[Implementation, Type[Any], str],
        admin: Address,
        data: Optional[EncodedCall] = None,
        *,
        address: Address,
        deployer: Address = ZERO_ADDRESS,
        storage: Optional[ContractStorage] = None,
        **logic_kwargs: Any,
    ) -> None:
        logic_cls = _as_logic(implementation)
        self.storage = storage if storage is not None else ContractStorage(normalize_address(address))
        self._logic_kwargs = logic_kwargs
        self._logic: Any = None
        if storage is not None:
            # restored from a snapshot: state already holds implementation/admin
            self._logic = logic_cls(self.storage, **logic_kwargs)
            return
        admin = normalize_address(admin)
        if admin == ZERO_ADDRESS:
            raise InvalidAdmin(admin)
        with self.storage.transaction() as j:
            j.set(K_IMPL, _logic_name(logic_cls))
            j.emit(Upgraded(implementation=_logic_name(logic_cls)))
            j.set(K_ADMIN, admin)
            j.emit(AdminChanged(previous_admin=ZERO_ADDRESS, new_admin=admin))
            logic = logic_cls(self.storage, **logic_kwargs)
            if data is not None:
                invoke(logic, normalize_address(deployer), data)
        self._logic = logic
        log.info("proxy %s -> %s (admin %s)", self.address, _logic_name(logic_cls), admin)

    def __repr__(self) -> str:
        return f"<TransparentProxy {self.address} -> {self.implementation}>"

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def address(self) -> Address:
        return self.storage.address

    @property
    def implementation(self) -> str:
        return self.storage.journal.get(K_IMPL, "")

    @property
    def admin(self) -> Address:
        return self.storage.journal.get(K_ADMIN, ZERO_ADDRESS)

    @property
    def events(self):
        return self.storage.events

    @property
    def logic(self) -> Any:
        """The current implementation bound to this proxy's storage."""
        return self._logic

    # ------------------------------------------------------------------ #
    # Forwarding
    # ------------------------------------------------------------------ #

    def call(self, caller: Address, name_or_signature: str, *args: Any) -> Any:
        caller = normalize_address(caller)
        if caller == self.admin:
            raise ProxyDeniedAdminAccess(caller)
        encoded = encode_function_call(type(self._logic), name_or_signature, args)
        return invoke(self._logic, caller, encoded)

    def view(self, name_or_signature: str, *args: Any) -> Any:
        return self.call(ZERO_ADDRESS, name_or_signature, *args)

    def connect(self, caller: Address) -> BoundCaller:
        return BoundCaller(self, caller)

    # ------------------------------------------------------------------ #
    # Upgrades (admin only)
    # ------------------------------------------------------------------ #

    def upgrade_to_and_call(
        self,
        caller: Address,
        implementation: Union[Implementation, Type[Any], str],
        data: Optional[EncodedCall] = None,
    ) -> None:
        caller = normalize_address(caller)
        if caller != self.admin:
            # non-admins fall through to the logic, which has no such function
            raise UnknownFunction(UPGRADE_SIGNATURE)
        logic_cls = _as_logic(implementation)
        name = _logic_name(logic_cls)
        with self.storage.transaction() as j:
            j.set(K_IMPL, name)
            j.emit(Upgraded(implementation=name))
            logic = logic_cls(self.storage, **self._logic_kwargs)
            if data is not None:
                invoke(logic, caller, data)
        self._logic = logic
        log.info("proxy %s upgraded to %s", self.address, name)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        return self.storage.to_dict()

    @classmethod
    def from_dict(cls, d: Dict[str, Any], **logic_kwargs: Any) -> "TransparentProxy":
        storage = ContractStorage.from_dict(d)
        impl_name = storage.data.get(K_IMPL)
        if not impl_name:
            raise InvalidImplementation(impl_name)
        return cls(
            impl_name,
            storage.data.get(K_ADMIN, ZERO_ADDRESS),
            address=storage.address,
            storage=storage,
            **logic_kwargs,
        )


class ProxyAdmin:
    """Owned upgrade authority for one or more proxies."""

    def __init__(
        self,
        owner: Address,
        *,
        address: Address,
        storage: Optional[ContractStorage] = None,
    ) -> None:
        self.storage = storage if storage is not None else ContractStorage(normalize_address(address))
        if storage is not None:
            return
        owner = normalize_address(owner)
        if owner == ZERO_ADDRESS:
            raise OwnableInvalidOwner(owner)
        with self.storage.transaction() as j:
            j.set(K_OWNER, owner)
            j.emit(OwnershipTransferred(previous_owner=ZERO_ADDRESS, new_owner=owner))

    def __repr__(self) -> str:
        return f"<ProxyAdmin {self.address} owner={self.owner()}>"

    @property
    def address(self) -> Address:
        return self.storage.address

    @property
    def events(self):
        return self.storage.events

    def owner(self) -> Address:
        return self.storage.journal.get(K_OWNER, ZERO_ADDRESS)

    def _check_owner(self, caller: Address) -> Address:
        caller = normalize_address(caller)
        if caller != self.owner():
            raise OwnableUnauthorizedAccount(caller)
        return caller

    def transfer_ownership(self, caller: Address, new_owner: Address) -> None:
        with self.storage.transaction() as j:
            previous = self._check_owner(caller)
            new_owner = normalize_address(new_owner)
            if new_owner == ZERO_ADDRESS:
                raise OwnableInvalidOwner(new_owner)
            j.set(K_OWNER, new_owner)
            j.emit(OwnershipTransferred(previous_owner=previous, new_owner=new_owner))

    def upgrade_and_call(
        self,
        caller: Address,
        proxy: TransparentProxy,
        implementation: Union[Implementation, Type[Any], str],
        data: Optional[EncodedCall] = None,
    ) -> None:
        self._check_owner(caller)
        proxy.upgrade_to_and_call(self.address, implementation, data)

    def to_dict(self) -> Dict[str, Any]:
        return self.storage.to_dict()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProxyAdmin":
        storage = ContractStorage.from_dict(d)
        return cls(storage.data.get(K_OWNER, ZERO_ADDRESS), address=storage.address, storage=storage)


def encode_initialize(admin: Address, minter: Address, burner: Address) -> EncodedCall:
    """Encoded ``initialize(admin, minter, burner)`` for TokenLedger proxies."""
    return encode_function_call(TokenLedger, "initialize", [admin, minter, burner])
