from __future__ import annotations

import pytest

from token_ledger import roles
from token_ledger.errors import BadConfirmation, Unauthorized
from token_ledger.events import RoleGranted, RoleRevoked
from token_ledger.roles import (BURNER_ROLE, DEFAULT_ADMIN_ROLE, MINTER_ROLE,
                                derive_role_id, normalize_role,
                                role_from_name)


def test_role_ids():
    assert DEFAULT_ADMIN_ROLE == b"\x00" * 32
    assert MINTER_ROLE.hex() == "9f2df0fed2c77648de5860a4cc508cd0818c85b8b8a1ab4ceeef8d981c8956a6"
    assert BURNER_ROLE.hex() == "3c11d16cbaffd01df69ce1c404f6340ee057498f5f00246190ea54220576a848"
    assert derive_role_id("MINTER_ROLE") == MINTER_ROLE


def test_role_names_and_hex():
    assert role_from_name("minter") == MINTER_ROLE
    assert role_from_name("BURNER_ROLE") == BURNER_ROLE
    assert role_from_name("ADMIN") == DEFAULT_ADMIN_ROLE
    assert role_from_name("0x" + MINTER_ROLE.hex()) == MINTER_ROLE
    with pytest.raises(ValueError):
        role_from_name("OPERATOR")
    with pytest.raises(ValueError):
        normalize_role(b"\x01" * 31)


def test_every_role_is_administered_by_admin(ledger):
    for role in (DEFAULT_ADMIN_ROLE, MINTER_ROLE, BURNER_ROLE):
        assert ledger.get_role_admin(role) == DEFAULT_ADMIN_ROLE


def test_admin_grants_and_revokes(ledger, acct):
    assert ledger.grant_role(acct.A, MINTER_ROLE, acct.B) is True
    assert ledger.has_role(MINTER_ROLE, acct.B)
    assert list(ledger.events)[-1].event == RoleGranted(role=MINTER_ROLE, account=acct.B, sender=acct.A)

    assert ledger.revoke_role(acct.A, MINTER_ROLE, acct.B) is True
    assert not ledger.has_role(MINTER_ROLE, acct.B)
    assert list(ledger.events)[-1].event == RoleRevoked(role=MINTER_ROLE, account=acct.B, sender=acct.A)


def test_grant_and_revoke_are_idempotent(ledger, acct):
    ledger.grant_role(acct.A, BURNER_ROLE, acct.B)
    n = len(ledger.events)
    assert ledger.grant_role(acct.A, BURNER_ROLE, acct.B) is False
    assert len(ledger.events) == n
    ledger.revoke_role(acct.A, BURNER_ROLE, acct.B)
    n = len(ledger.events)
    assert ledger.revoke_role(acct.A, BURNER_ROLE, acct.B) is False
    assert len(ledger.events) == n


def test_non_admin_cannot_grant(ledger, acct):
    with pytest.raises(Unauthorized) as ei:
        ledger.grant_role(acct.B, MINTER_ROLE, acct.B)
    assert ei.value.account == acct.B
    assert ei.value.role == DEFAULT_ADMIN_ROLE
    assert not ledger.has_role(MINTER_ROLE, acct.B)


def test_minter_is_not_an_admin(ledger, acct):
    ledger.grant_role(acct.A, MINTER_ROLE, acct.B)
    with pytest.raises(Unauthorized):
        ledger.revoke_role(acct.B, MINTER_ROLE, acct.A)


def test_revoked_minter_loses_mint(ledger, acct):
    ledger.revoke_role(acct.A, MINTER_ROLE, acct.A)
    with pytest.raises(Unauthorized):
        ledger.mint(acct.A, acct.B, 1)


def test_renounce_requires_confirmation(ledger, acct):
    with pytest.raises(BadConfirmation):
        ledger.renounce_role(acct.A, BURNER_ROLE, acct.B)
    assert ledger.has_role(BURNER_ROLE, acct.A)
    assert ledger.renounce_role(acct.A, BURNER_ROLE, acct.A) is True
    assert not ledger.has_role(BURNER_ROLE, acct.A)


def test_admin_revoking_itself_locks_role_admin(ledger, acct):
    ledger.grant_role(acct.A, DEFAULT_ADMIN_ROLE, acct.B)
    assert ledger.revoke_role(acct.A, DEFAULT_ADMIN_ROLE, acct.A) is True
    assert not ledger.has_role(DEFAULT_ADMIN_ROLE, acct.A)
    with pytest.raises(Unauthorized) as ei:
        ledger.grant_role(acct.A, MINTER_ROLE, acct.C)
    assert ei.value.role == DEFAULT_ADMIN_ROLE
    # the other admin keeps full control
    ledger.revoke_role(acct.B, MINTER_ROLE, acct.A)
    assert not ledger.has_role(MINTER_ROLE, acct.A)


def test_last_admin_renouncing_leaves_no_admin(ledger, acct):
    assert ledger.renounce_role(acct.A, DEFAULT_ADMIN_ROLE, acct.A) is True
    assert ledger.role_members(DEFAULT_ADMIN_ROLE) == []
    assert list(ledger.events)[-1].event == RoleRevoked(role=DEFAULT_ADMIN_ROLE, account=acct.A, sender=acct.A)
    with pytest.raises(Unauthorized):
        ledger.grant_role(acct.A, DEFAULT_ADMIN_ROLE, acct.A)
    with pytest.raises(Unauthorized):
        ledger.revoke_role(acct.A, BURNER_ROLE, acct.A)
    # roles already held still work
    ledger.mint(acct.A, acct.B, 3)
    assert ledger.balance_of(acct.B) == 3


def test_custom_admin_role(ledger, acct):
    operator = derive_role_id("OPERATOR_ROLE")
    with ledger.storage.transaction() as j:
        roles._set_role_admin(j, MINTER_ROLE, operator)
        roles._grant_role(j, operator, acct.C, acct.A)
    assert ledger.get_role_admin(MINTER_ROLE) == operator
    ledger.grant_role(acct.C, MINTER_ROLE, acct.D)
    with pytest.raises(Unauthorized) as ei:
        ledger.grant_role(acct.A, MINTER_ROLE, acct.B)
    assert ei.value.role == operator


def test_role_members(ledger, acct):
    ledger.grant_role(acct.A, MINTER_ROLE, acct.B)
    assert ledger.role_members(MINTER_ROLE) == sorted([acct.A, acct.B])
