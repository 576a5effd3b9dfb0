"""
token_ledger.errors
-------------------

Typed exceptions for the token ledger, its proxy layer and the deployment
tooling. These are designed to be:
- Richly structured (carry machine-parsable context via `.to_dict()`).
- Stable (integer `code` values and snake_case `reason` tags never change).
- Easy to log (clean __str__ plus a compact `reason`).

Hierarchy:

    LedgerError (base)
    ├── AlreadyInitialized
    ├── Unauthorized
    ├── BadConfirmation
    ├── InvalidReceiver
    ├── InvalidSender
    ├── InvalidApprover
    ├── InvalidSpender
    ├── InsufficientBalance
    ├── InsufficientAllowance
    ├── AmountOutOfRange
    ├── ArithmeticOverflow
    ├── ProxyError
    │   ├── ProxyDeniedAdminAccess
    │   ├── UnknownFunction
    │   ├── InvalidImplementation
    │   ├── OwnableUnauthorizedAccount
    │   ├── OwnableInvalidOwner
    │   └── InvalidAdmin
    ├── DeploymentError
    └── ConfigError

Every ledger call either commits or raises one of these; a raised error means
no state change and no event from that call is observable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

__all__ = [
    "LedgerErrorCode",
    "LedgerError",
    "AlreadyInitialized",
    "Unauthorized",
    "BadConfirmation",
    "InvalidReceiver",
    "InvalidSender",
    "InvalidApprover",
    "InvalidSpender",
    "InsufficientBalance",
    "InsufficientAllowance",
    "AmountOutOfRange",
    "ArithmeticOverflow",
    "ProxyError",
    "ProxyDeniedAdminAccess",
    "UnknownFunction",
    "InvalidImplementation",
    "OwnableUnauthorizedAccount",
    "OwnableInvalidOwner",
    "InvalidAdmin",
    "DeploymentError",
    "ConfigError",
]


class LedgerErrorCode:
    """
    Stable numeric error codes.

    1000–1099: ledger state transitions
    1100–1199: proxy / upgrade layer
    1200–1299: tooling (deployment, configuration)
    """

    ALREADY_INITIALIZED = 1000
    UNAUTHORIZED = 1001
    BAD_CONFIRMATION = 1002
    INVALID_RECEIVER = 1010
    INVALID_SENDER = 1011
    INVALID_APPROVER = 1012
    INVALID_SPENDER = 1013
    INSUFFICIENT_BALANCE = 1020
    INSUFFICIENT_ALLOWANCE = 1021
    AMOUNT_OUT_OF_RANGE = 1030
    ARITHMETIC_OVERFLOW = 1031

    PROXY = 1100
    PROXY_DENIED_ADMIN_ACCESS = 1101
    UNKNOWN_FUNCTION = 1102
    INVALID_IMPLEMENTATION = 1103
    OWNABLE_UNAUTHORIZED = 1104
    OWNABLE_INVALID_OWNER = 1105
    INVALID_ADMIN = 1106

    DEPLOYMENT = 1200
    CONFIG = 1201


def _hex(v: Any) -> Any:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return v


@dataclass(eq=False)
class LedgerError(Exception):
    """
    Base class for ledger errors.

    Attributes
    ----------
    code : int
        Stable integer code (see LedgerErrorCode).
    reason : str
        Short, machine-friendly reason (snake_case).
    message : str
        Human-readable message.
    context : Dict[str, Any]
        The operands of the failed check (accounts, amounts, role ids).
    """

    code: int
    reason: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        ctx = ""
        if self.context:
            parts = []
            for k, v in self.context.items():
                if v is None:
                    continue
                parts.append(f"{k}={_hex(v)}")
            if parts:
                ctx = " [" + ", ".join(parts) + "]"
        return f"{self.reason}: {self.message}{ctx}"

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable error object."""
        return {
            "code": self.code,
            "reason": self.reason,
            "message": self.message,
            "context": {k: _hex(v) for k, v in self.context.items()},
        }


# ---------------------------------------------------------------------------
# Ledger state transitions
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class AlreadyInitialized(LedgerError):
    """The one-shot initializer has already run. Permanent."""

    def __init__(self) -> None:
        super().__init__(
            code=LedgerErrorCode.ALREADY_INITIALIZED,
            reason="already_initialized",
            message="ledger is already initialized",
        )


@dataclass(eq=False)
class Unauthorized(LedgerError):
    """`account` does not hold `role`, which the call requires."""

    def __init__(self, account: str, role: bytes) -> None:
        super().__init__(
            code=LedgerErrorCode.UNAUTHORIZED,
            reason="unauthorized",
            message=f"account {account} is missing role 0x{bytes(role).hex()}",
            context={"account": account, "role": bytes(role)},
        )
        self.account = account
        self.role = bytes(role)


@dataclass(eq=False)
class BadConfirmation(LedgerError):
    """renounce_role was called with a confirmation that is not the caller."""

    def __init__(self, caller: str, confirmation: str) -> None:
        super().__init__(
            code=LedgerErrorCode.BAD_CONFIRMATION,
            reason="bad_confirmation",
            message="roles can only be renounced for self",
            context={"caller": caller, "confirmation": confirmation},
        )


@dataclass(eq=False)
class InvalidReceiver(LedgerError):
    def __init__(self, receiver: str) -> None:
        super().__init__(
            code=LedgerErrorCode.INVALID_RECEIVER,
            reason="invalid_receiver",
            message=f"invalid receiver {receiver}",
            context={"receiver": receiver},
        )
        self.receiver = receiver


@dataclass(eq=False)
class InvalidSender(LedgerError):
    def __init__(self, sender: str) -> None:
        super().__init__(
            code=LedgerErrorCode.INVALID_SENDER,
            reason="invalid_sender",
            message=f"invalid sender {sender}",
            context={"sender": sender},
        )
        self.sender = sender


@dataclass(eq=False)
class InvalidApprover(LedgerError):
    def __init__(self, approver: str) -> None:
        super().__init__(
            code=LedgerErrorCode.INVALID_APPROVER,
            reason="invalid_approver",
            message=f"invalid approver {approver}",
            context={"approver": approver},
        )
        self.approver = approver


@dataclass(eq=False)
class InvalidSpender(LedgerError):
    def __init__(self, spender: str) -> None:
        super().__init__(
            code=LedgerErrorCode.INVALID_SPENDER,
            reason="invalid_spender",
            message=f"invalid spender {spender}",
            context={"spender": spender},
        )
        self.spender = spender


@dataclass(eq=False)
class InsufficientBalance(LedgerError):
    """A debit of `requested` exceeds the `available` balance of `account`."""

    def __init__(self, account: str, available: int, requested: int) -> None:
        super().__init__(
            code=LedgerErrorCode.INSUFFICIENT_BALANCE,
            reason="insufficient_balance",
            message=f"balance {available} < requested {requested}",
            context={"account": account, "available": available, "requested": requested},
        )
        self.account = account
        self.available = available
        self.requested = requested


@dataclass(eq=False)
class InsufficientAllowance(LedgerError):
    """A debit-by-proxy of `requested` exceeds the `available` allowance of `spender`."""

    def __init__(self, spender: str, available: int, requested: int) -> None:
        super().__init__(
            code=LedgerErrorCode.INSUFFICIENT_ALLOWANCE,
            reason="insufficient_allowance",
            message=f"allowance {available} < requested {requested}",
            context={"spender": spender, "available": available, "requested": requested},
        )
        self.spender = spender
        self.available = available
        self.requested = requested


@dataclass(eq=False)
class AmountOutOfRange(LedgerError):
    def __init__(self, value: Any) -> None:
        super().__init__(
            code=LedgerErrorCode.AMOUNT_OUT_OF_RANGE,
            reason="amount_out_of_range",
            message="amount must be an integer in [0, 2**256-1]",
            context={"value": value if isinstance(value, int) else repr(value)},
        )
        self.value = value


@dataclass(eq=False)
class ArithmeticOverflow(LedgerError):
    def __init__(self, op: str, x: int, y: int) -> None:
        super().__init__(
            code=LedgerErrorCode.ARITHMETIC_OVERFLOW,
            reason="arithmetic_overflow",
            message=f"u256 {op} overflow",
            context={"x": x, "y": y},
        )


# ---------------------------------------------------------------------------
# Proxy / upgrade layer
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class ProxyError(LedgerError):
    def __init__(
        self,
        message: str,
        *,
        code: int = LedgerErrorCode.PROXY,
        reason: str = "proxy_error",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(code=code, reason=reason, message=message, context=context or {})


@dataclass(eq=False)
class ProxyDeniedAdminAccess(ProxyError):
    """The proxy admin may only upgrade; it can never reach the implementation."""

    def __init__(self, caller: str) -> None:
        super().__init__(
            "proxy admin cannot fall back to the implementation",
            code=LedgerErrorCode.PROXY_DENIED_ADMIN_ACCESS,
            reason="proxy_denied_admin_access",
            context={"caller": caller},
        )


@dataclass(eq=False)
class UnknownFunction(ProxyError):
    def __init__(self, signature: str) -> None:
        super().__init__(
            f"no function matches {signature!r}",
            code=LedgerErrorCode.UNKNOWN_FUNCTION,
            reason="unknown_function",
            context={"signature": signature},
        )
        self.signature = signature


@dataclass(eq=False)
class InvalidImplementation(ProxyError):
    def __init__(self, implementation: Any) -> None:
        super().__init__(
            "implementation does not expose a ledger interface",
            code=LedgerErrorCode.INVALID_IMPLEMENTATION,
            reason="invalid_implementation",
            context={"implementation": getattr(implementation, "__name__", repr(implementation))},
        )


@dataclass(eq=False)
class OwnableUnauthorizedAccount(ProxyError):
    def __init__(self, account: str) -> None:
        super().__init__(
            f"account {account} is not the owner",
            code=LedgerErrorCode.OWNABLE_UNAUTHORIZED,
            reason="ownable_unauthorized_account",
            context={"account": account},
        )
        self.account = account


@dataclass(eq=False)
class OwnableInvalidOwner(ProxyError):
    def __init__(self, owner: str) -> None:
        super().__init__(
            f"invalid owner {owner}",
            code=LedgerErrorCode.OWNABLE_INVALID_OWNER,
            reason="ownable_invalid_owner",
            context={"owner": owner},
        )
        self.owner = owner


@dataclass(eq=False)
class InvalidAdmin(ProxyError):
    """A proxy admin must be a real account; the null account is rejected."""

    def __init__(self, admin: str) -> None:
        super().__init__(
            f"invalid proxy admin {admin}",
            code=LedgerErrorCode.INVALID_ADMIN,
            reason="invalid_admin",
            context={"admin": admin},
        )
        self.admin = admin


# ---------------------------------------------------------------------------
# Tooling
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class DeploymentError(LedgerError):
    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            code=LedgerErrorCode.DEPLOYMENT,
            reason="deployment_failed",
            message=message,
            context=context or {},
        )


@dataclass(eq=False)
class ConfigError(LedgerError):
    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            code=LedgerErrorCode.CONFIG,
            reason="invalid_config",
            message=message,
            context=context or {},
        )
