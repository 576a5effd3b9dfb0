"""
Upgradeable fungible token ledger with role-gated mint and burn.

This module holds the ledger's logic. State lives in a `ContractStorage`
(normally owned by a `TransparentProxy`), so the logic class can be swapped
while balances, allowances, supply and roles persist.

Highlights
----------
- Explicit `caller` parameters for mutating calls (no ambient sender).
- One-shot `initialize(admin, minter, burner)`; a second call always fails
  with AlreadyInitialized.
- Every mutating call is atomic: it runs in one journal checkpoint and either
  commits all writes and events or raises and leaves no trace.
- U256-checked amounts (`safe_uint`); nothing ever wraps.
- Events:
    - Transfer(sender, receiver, value)   mint: sender = null, burn: receiver = null
    - Approval(owner, spender, value)
    - RoleGranted / RoleRevoked
    - Initialized(version)

Public interface
----------------
# views
name() -> str
symbol() -> str
decimals() -> int
total_supply() -> int
balance_of(account) -> int
allowance(owner, spender) -> int
has_role(role, account) -> bool
get_role_admin(role) -> bytes

# state-changing (explicit caller)
initialize(admin, minter, burner, *, caller=ZERO_ADDRESS) -> None
mint(caller, to, amount) -> None                  MINTER_ROLE
burn(caller, amount) -> None                      holder burns own tokens
burn_as_burner(caller, account, amount) -> None   BURNER_ROLE
burn_from(caller, account, amount) -> None        consumes allowance
transfer(caller, to, amount) -> bool
approve(caller, spender, amount) -> bool
transfer_from(caller, owner, to, amount) -> bool
grant_role / revoke_role / renounce_role

Check order
-----------
transfer_from, burn_from:  allowance, then sender/receiver, then balance
burn_as_burner:            role, then sender, then balance
mint:                      role, then receiver, then supply overflow
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from . import roles as _roles
from .abi import CALL, INIT, VIEW, AbiFunction
from .address import ZERO_ADDRESS, Address, derive_address, normalize_address
from .config import TokenConfig
from .errors import (AlreadyInitialized, InsufficientAllowance,
                     InsufficientBalance, InvalidApprover, InvalidReceiver,
                     InvalidSender, InvalidSpender, LedgerError)
from .events import Approval, Initialized, Transfer
from .journal import ContractStorage, Journal
from .metrics import LEDGER_METRICS, LedgerMetrics
from .safe_uint import U256_MAX, require_u256, u256_add, u256_sub

log = logging.getLogger(__name__)

# Storage keys
K_INIT = "meta:initialized"  # initializer version (int)
K_NAME = "meta:name"
K_SYMBOL = "meta:symbol"
K_DECIMALS = "meta:decimals"
K_TOTAL = "meta:total_supply"
BAL_PREFIX = "bal:"
ALLOW_PREFIX = "allow:"

INITIALIZER_VERSION = 1


def _key_balance(account: Address) -> str:
    return BAL_PREFIX + account


def _key_allow(owner: Address, spender: Address) -> str:
    return f"{ALLOW_PREFIX}{owner}:{spender}"


class TokenLedger:
    """
    Fungible token logic bound to a storage.

    Parameters
    ----------
    storage : ContractStorage, optional
        Where state lives. A fresh standalone storage is created if omitted.
    config : TokenConfig, optional
        Metadata written by `initialize` (name, symbol, decimals).
    metrics : LedgerMetrics, optional
        Defaults to the module-wide `LEDGER_METRICS`.
    """

    ABI = (
        AbiFunction("initialize(address,address,address)", "initialize", INIT),
        AbiFunction("name()", "name", VIEW),
        AbiFunction("symbol()", "symbol", VIEW),
        AbiFunction("decimals()", "decimals", VIEW),
        AbiFunction("totalSupply()", "total_supply", VIEW),
        AbiFunction("balanceOf(address)", "balance_of", VIEW),
        AbiFunction("allowance(address,address)", "allowance", VIEW),
        AbiFunction("hasRole(bytes32,address)", "has_role", VIEW),
        AbiFunction("getRoleAdmin(bytes32)", "get_role_admin", VIEW),
        AbiFunction("mint(address,uint256)", "mint", CALL),
        AbiFunction("burn(uint256)", "burn", CALL),
        AbiFunction("burn(address,uint256)", "burn_as_burner", CALL),
        AbiFunction("burnFrom(address,uint256)", "burn_from", CALL),
        AbiFunction("transfer(address,uint256)", "transfer", CALL),
        AbiFunction("approve(address,uint256)", "approve", CALL),
        AbiFunction("transferFrom(address,address,uint256)", "transfer_from", CALL),
        AbiFunction("grantRole(bytes32,address)", "grant_role", CALL),
        AbiFunction("revokeRole(bytes32,address)", "revoke_role", CALL),
        AbiFunction("renounceRole(bytes32,address)", "renounce_role", CALL),
    )

    DEFAULT_ADMIN_ROLE = _roles.DEFAULT_ADMIN_ROLE
    MINTER_ROLE = _roles.MINTER_ROLE
    BURNER_ROLE = _roles.BURNER_ROLE

    def __init__(
        self,
        storage: Optional[ContractStorage] = None,
        *,
        config: Optional[TokenConfig] = None,
        metrics: Optional[LedgerMetrics] = None,
    ) -> None:
        self.storage = storage if storage is not None else ContractStorage(derive_address("token-ledger"))
        self.config = config or TokenConfig()
        self.metrics = metrics or LEDGER_METRICS

    def __repr__(self) -> str:
        return f"<TokenLedger at {self.address}>"

    @property
    def address(self) -> Address:
        return self.storage.address

    @property
    def events(self):
        return self.storage.events

    # ------------------------------------------------------------------ #
    # Call plumbing
    # ------------------------------------------------------------------ #

    @contextmanager
    def _call(self, op: str) -> Iterator[Journal]:
        try:
            with self.storage.transaction() as j:
                yield j
        except LedgerError as exc:
            self.metrics.record_revert(op, exc.reason)
            log.info("%s reverted: %s", op, exc)
            raise
        self.metrics.record_call(op)
        log.debug("%s committed", op)

    @property
    def _j(self) -> Journal:
        return self.storage.journal

    # ------------------------------------------------------------------ #
    # Initialization
    # ------------------------------------------------------------------ #

    def initialize(
        self,
        admin: Address,
        minter: Address,
        burner: Address,
        *,
        caller: Address = ZERO_ADDRESS,
    ) -> None:
        """
        One-time initializer. Grants ADMIN, MINTER and BURNER (the holders
        may coincide) and writes token metadata. Fails with
        AlreadyInitialized on any later call, whatever the arguments.
        """
        with self._call("initialize") as j:
            if j.get(K_INIT):
                raise AlreadyInitialized()
            caller = normalize_address(caller)
            j.set(K_INIT, INITIALIZER_VERSION)
            j.set(K_NAME, self.config.name)
            j.set(K_SYMBOL, self.config.symbol)
            j.set(K_DECIMALS, self.config.decimals)
            j.set(K_TOTAL, j.get(K_TOTAL, 0))
            _roles._grant_role(j, _roles.DEFAULT_ADMIN_ROLE, admin, caller)
            _roles._grant_role(j, _roles.MINTER_ROLE, minter, caller)
            _roles._grant_role(j, _roles.BURNER_ROLE, burner, caller)
            j.emit(Initialized(version=INITIALIZER_VERSION))
        log.info(
            "initialized %s admin=%s minter=%s burner=%s",
            self.address,
            normalize_address(admin),
            normalize_address(minter),
            normalize_address(burner),
        )

    def is_initialized(self) -> bool:
        with self.storage.lock:
            return bool(self._j.get(K_INIT))

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #

    def name(self) -> str:
        with self.storage.lock:
            return self._j.get(K_NAME, "")

    def symbol(self) -> str:
        with self.storage.lock:
            return self._j.get(K_SYMBOL, "")

    def decimals(self) -> int:
        with self.storage.lock:
            return int(self._j.get(K_DECIMALS, self.config.decimals))

    def total_supply(self) -> int:
        with self.storage.lock:
            return int(self._j.get(K_TOTAL, 0))

    def balance_of(self, account: Address) -> int:
        with self.storage.lock:
            return int(self._j.get(_key_balance(normalize_address(account)), 0))

    def allowance(self, owner: Address, spender: Address) -> int:
        with self.storage.lock:
            key = _key_allow(normalize_address(owner), normalize_address(spender))
            return int(self._j.get(key, 0))

    def balances(self) -> Dict[Address, int]:
        """Every account that ever held a balance, including zero balances."""
        with self.storage.lock:
            return {k[len(BAL_PREFIX):]: int(v) for k, v in self._j.items(BAL_PREFIX)}

    def has_role(self, role: bytes, account: Address) -> bool:
        with self.storage.lock:
            return _roles.has_role(self._j, role, account)

    def get_role_admin(self, role: bytes) -> bytes:
        with self.storage.lock:
            return _roles.get_role_admin(self._j, role)

    def role_members(self, role: bytes) -> List[Address]:
        with self.storage.lock:
            return _roles.members(self._j, role)

    # ------------------------------------------------------------------ #
    # Internals (run inside an open checkpoint)
    # ------------------------------------------------------------------ #

    @staticmethod
    def _update(j: Journal, sender: Address, receiver: Address, value: int) -> None:
        """Move `value` from sender to receiver; the null account mints or burns."""
        if sender == ZERO_ADDRESS:
            j.set(K_TOTAL, u256_add(int(j.get(K_TOTAL, 0)), value))
        else:
            available = int(j.get(_key_balance(sender), 0))
            if available < value:
                raise InsufficientBalance(sender, available, value)
            j.set(_key_balance(sender), available - value)

        if receiver == ZERO_ADDRESS:
            j.set(K_TOTAL, u256_sub(int(j.get(K_TOTAL, 0)), value))
        else:
            # cannot overflow: a balance never exceeds total supply
            j.set(_key_balance(receiver), int(j.get(_key_balance(receiver), 0)) + value)

        j.emit(Transfer(sender=sender, receiver=receiver, value=value))

    def _transfer(self, j: Journal, sender: Address, receiver: Address, value: int) -> None:
        if sender == ZERO_ADDRESS:
            raise InvalidSender(sender)
        if receiver == ZERO_ADDRESS:
            raise InvalidReceiver(receiver)
        self._update(j, sender, receiver, value)

    def _mint(self, j: Journal, account: Address, value: int) -> None:
        if account == ZERO_ADDRESS:
            raise InvalidReceiver(account)
        self._update(j, ZERO_ADDRESS, account, value)

    def _burn(self, j: Journal, account: Address, value: int) -> None:
        if account == ZERO_ADDRESS:
            raise InvalidSender(account)
        self._update(j, account, ZERO_ADDRESS, value)

    @staticmethod
    def _approve(j: Journal, owner: Address, spender: Address, value: int, emit: bool = True) -> None:
        if owner == ZERO_ADDRESS:
            raise InvalidApprover(owner)
        if spender == ZERO_ADDRESS:
            raise InvalidSpender(spender)
        j.set(_key_allow(owner, spender), value)
        if emit:
            j.emit(Approval(owner=owner, spender=spender, value=value))

    def _spend_allowance(self, j: Journal, owner: Address, spender: Address, value: int) -> None:
        """Consume allowance; an allowance of U256_MAX is infinite and never shrinks."""
        current = int(j.get(_key_allow(owner, spender), 0))
        if current == U256_MAX:
            return
        if current < value:
            raise InsufficientAllowance(spender, current, value)
        self._approve(j, owner, spender, current - value, emit=False)

    def _supply_changed(self) -> None:
        self.metrics.set_total_supply(self.total_supply())

    # ------------------------------------------------------------------ #
    # Supply control
    # ------------------------------------------------------------------ #

    def mint(self, caller: Address, to: Address, amount: int) -> None:
        """Create `amount` tokens for `to`. Requires MINTER_ROLE, checked before the amount."""
        with self._call("mint") as j:
            caller, to = normalize_address(caller), normalize_address(to)
            _roles.check_role(j, _roles.MINTER_ROLE, caller)
            require_u256(amount)
            self._mint(j, to, amount)
        self._supply_changed()

    def burn(self, caller: Address, amount: int) -> None:
        """Holder destroys `amount` of their own tokens."""
        with self._call("burn") as j:
            require_u256(amount)
            self._burn(j, normalize_address(caller), amount)
        self._supply_changed()

    def burn_as_burner(self, caller: Address, account: Address, amount: int) -> None:
        """
        Destroy `amount` of `account`'s tokens without an allowance.
        Requires BURNER_ROLE; the role check wins over the amount and balance checks.
        """
        with self._call("burn_as_burner") as j:
            caller, account = normalize_address(caller), normalize_address(account)
            _roles.check_role(j, _roles.BURNER_ROLE, caller)
            require_u256(amount)
            self._burn(j, account, amount)
        self._supply_changed()

    def burn_from(self, caller: Address, account: Address, amount: int) -> None:
        """Spender (`caller`) burns `amount` from `account` using its allowance."""
        with self._call("burn_from") as j:
            require_u256(amount)
            caller, account = normalize_address(caller), normalize_address(account)
            self._spend_allowance(j, account, caller, amount)
            self._burn(j, account, amount)
        self._supply_changed()

    # ------------------------------------------------------------------ #
    # Transfers & allowances
    # ------------------------------------------------------------------ #

    def transfer(self, caller: Address, to: Address, amount: int) -> bool:
        with self._call("transfer") as j:
            require_u256(amount)
            self._transfer(j, normalize_address(caller), normalize_address(to), amount)
        return True

    def approve(self, caller: Address, spender: Address, amount: int) -> bool:
        """Set (not add to) the allowance of `spender` over `caller`'s tokens."""
        with self._call("approve") as j:
            require_u256(amount)
            self._approve(j, normalize_address(caller), normalize_address(spender), amount)
        return True

    def transfer_from(self, caller: Address, owner: Address, to: Address, amount: int) -> bool:
        """Spender (`caller`) moves `amount` from `owner` to `to` using allowance."""
        with self._call("transfer_from") as j:
            require_u256(amount)
            caller, owner, to = normalize_address(caller), normalize_address(owner), normalize_address(to)
            self._spend_allowance(j, owner, caller, amount)
            self._transfer(j, owner, to, amount)
        return True

    # ------------------------------------------------------------------ #
    # Role administration
    # ------------------------------------------------------------------ #

    def grant_role(self, caller: Address, role: bytes, account: Address) -> bool:
        with self._call("grant_role") as j:
            return _roles.grant_role(j, caller, role, account)

    def revoke_role(self, caller: Address, role: bytes, account: Address) -> bool:
        with self._call("revoke_role") as j:
            return _roles.revoke_role(j, caller, role, account)

    def renounce_role(self, caller: Address, role: bytes, confirmation: Address) -> bool:
        with self._call("renounce_role") as j:
            return _roles.renounce_role(j, caller, role, confirmation)


__all__ = ["TokenLedger", "INITIALIZER_VERSION"]
