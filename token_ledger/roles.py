"""
token_ledger.roles
==================

Role-based access control as an explicit capability table.

Design
------
- **Bytes32 role identifiers**: `DEFAULT_ADMIN_ROLE` is 32 zero bytes; other
  roles are ``keccak256(<name>)`` (`derive_role_id`).
- **Two tables in the journaled store**:
    - membership  ``role:<role-hex>:<account>`` → True
    - admin-of    ``role_admin:<role-hex>``    → role-hex (absent = DEFAULT_ADMIN_ROLE)
- **Idempotent grants/revokes**: no-ops when nothing changes, and events are
  emitted only on an actual change.
- Every function takes the `Journal` it reads from and writes to; mutations
  must run inside an open checkpoint.

API surface
-----------
- Queries:   `has_role`, `get_role_admin`, `check_role`, `members`
- Mutations: `grant_role`, `revoke_role`, `renounce_role` (caller-gated)
             `_grant_role`, `_revoke_role`, `_set_role_admin` (ungated, for
             initializers)

Events
------
- RoleGranted(role, account, sender)
- RoleRevoked(role, account, sender)
"""
from __future__ import annotations

from typing import Dict, List, Union

from .address import Address, keccak256, normalize_address
from .errors import BadConfirmation, Unauthorized
from .events import RoleGranted, RoleRevoked
from .journal import Journal

__all__ = [
    "DEFAULT_ADMIN_ROLE",
    "MINTER_ROLE",
    "BURNER_ROLE",
    "ROLE_NAMES",
    "derive_role_id",
    "normalize_role",
    "role_from_name",
    "has_role",
    "get_role_admin",
    "check_role",
    "members",
    "grant_role",
    "revoke_role",
    "renounce_role",
]

ROLE_MEMBER_PREFIX = "role:"
ROLE_ADMIN_PREFIX = "role_admin:"


def derive_role_id(name: Union[str, bytes]) -> bytes:
    """Role id derivation: keccak256(name) → bytes32."""
    return keccak256(name)


DEFAULT_ADMIN_ROLE: bytes = b"\x00" * 32
MINTER_ROLE: bytes = derive_role_id("MINTER_ROLE")
BURNER_ROLE: bytes = derive_role_id("BURNER_ROLE")

ROLE_NAMES: Dict[str, bytes] = {
    "ADMIN": DEFAULT_ADMIN_ROLE,
    "DEFAULT_ADMIN_ROLE": DEFAULT_ADMIN_ROLE,
    "MINTER": MINTER_ROLE,
    "MINTER_ROLE": MINTER_ROLE,
    "BURNER": BURNER_ROLE,
    "BURNER_ROLE": BURNER_ROLE,
}


def normalize_role(role: Union[bytes, bytearray, str]) -> bytes:
    """
    Ensure `role` is a 32-byte id. Hex strings (with or without 0x) are
    accepted. Raises ValueError otherwise.
    """
    if isinstance(role, str):
        s = role[2:] if role.startswith(("0x", "0X")) else role
        try:
            role = bytes.fromhex(s)
        except ValueError:
            raise ValueError(f"role id is not hex: {role!r}") from None
    if not isinstance(role, (bytes, bytearray)) or len(role) != 32:
        raise ValueError("role id must be exactly 32 bytes")
    return bytes(role)


def role_from_name(name: str) -> bytes:
    """Resolve ``ADMIN``/``MINTER``/``BURNER`` (or a hex id) to a role id."""
    known = ROLE_NAMES.get(name.strip().upper())
    if known is not None:
        return known
    return normalize_role(name)


# ---- Internal key helpers ----------------------------------------------------


def _key_member(role: bytes, account: Address) -> str:
    return f"{ROLE_MEMBER_PREFIX}{role.hex()}:{account}"


def _key_admin(role: bytes) -> str:
    return ROLE_ADMIN_PREFIX + role.hex()


# ---- Queries ----------------------------------------------------------------


def has_role(j: Journal, role: bytes, account: Address) -> bool:
    role = normalize_role(role)
    return bool(j.get(_key_member(role, normalize_address(account)), False))


def get_role_admin(j: Journal, role: bytes) -> bytes:
    """Returns the admin role-id for `role`, or DEFAULT_ADMIN_ROLE if unset."""
    role = normalize_role(role)
    v = j.get(_key_admin(role))
    return bytes.fromhex(v) if v else DEFAULT_ADMIN_ROLE


def check_role(j: Journal, role: bytes, account: Address) -> None:
    """Raise Unauthorized(account, role) unless `account` holds `role`."""
    if not has_role(j, role, account):
        raise Unauthorized(normalize_address(account), normalize_role(role))


def members(j: Journal, role: bytes) -> List[Address]:
    prefix = f"{ROLE_MEMBER_PREFIX}{normalize_role(role).hex()}:"
    return [k[len(prefix):] for k, v in j.items(prefix) if v]


# ---- Ungated mutations (initializer use) ------------------------------------


def _grant_role(j: Journal, role: bytes, account: Address, sender: Address) -> bool:
    role = normalize_role(role)
    account = normalize_address(account)
    if has_role(j, role, account):
        return False
    j.set(_key_member(role, account), True)
    j.emit(RoleGranted(role=role, account=account, sender=sender))
    return True


def _revoke_role(j: Journal, role: bytes, account: Address, sender: Address) -> bool:
    role = normalize_role(role)
    account = normalize_address(account)
    if not has_role(j, role, account):
        return False
    j.delete(_key_member(role, account))
    j.emit(RoleRevoked(role=role, account=account, sender=sender))
    return True


def _set_role_admin(j: Journal, role: bytes, admin_role: bytes) -> None:
    j.set(_key_admin(normalize_role(role)), normalize_role(admin_role).hex())


# ---- Caller-gated mutations -------------------------------------------------


def grant_role(j: Journal, caller: Address, role: bytes, account: Address) -> bool:
    """
    Grant `role` to `account`. Only callable by a holder of the admin role of
    `role`. Returns True when membership changed.
    """
    caller = normalize_address(caller)
    check_role(j, get_role_admin(j, role), caller)
    return _grant_role(j, role, account, caller)


def revoke_role(j: Journal, caller: Address, role: bytes, account: Address) -> bool:
    """Revoke `role` from `account`. Only callable by an admin of `role`."""
    caller = normalize_address(caller)
    check_role(j, get_role_admin(j, role), caller)
    return _revoke_role(j, role, account, caller)


def renounce_role(j: Journal, caller: Address, role: bytes, confirmation: Address) -> bool:
    """
    Caller removes themself from `role`. `confirmation` must repeat the
    caller's address.
    """
    caller = normalize_address(caller)
    if normalize_address(confirmation) != caller:
        raise BadConfirmation(caller, normalize_address(confirmation))
    return _revoke_role(j, role, caller, caller)
