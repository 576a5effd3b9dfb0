from __future__ import annotations

import pytest

from token_ledger.address import ZERO_ADDRESS
from token_ledger.config import TokenConfig
from token_ledger.errors import AlreadyInitialized
from token_ledger.events import Initialized, RoleGranted
from token_ledger.roles import BURNER_ROLE, DEFAULT_ADMIN_ROLE, MINTER_ROLE
from token_ledger.token import INITIALIZER_VERSION, TokenLedger


def test_initialize_sets_metadata_and_roles(ledger, acct):
    assert ledger.is_initialized()
    assert ledger.name() == "TestERC20"
    assert ledger.symbol() == "TE20"
    assert ledger.decimals() == 18
    assert ledger.total_supply() == 0
    for role in (DEFAULT_ADMIN_ROLE, MINTER_ROLE, BURNER_ROLE):
        assert ledger.has_role(role, acct.A)
        assert not ledger.has_role(role, acct.B)


def test_initialize_emits_role_grants_then_initialized(ledger, acct):
    records = list(ledger.events)
    assert [r.name for r in records] == ["RoleGranted", "RoleGranted", "RoleGranted", "Initialized"]
    assert records[0].event == RoleGranted(role=DEFAULT_ADMIN_ROLE, account=acct.A, sender=acct.A)
    assert records[1].event.role == MINTER_ROLE
    assert records[2].event.role == BURNER_ROLE
    assert records[3].event == Initialized(version=INITIALIZER_VERSION)
    assert [r.log_index for r in records] == [0, 1, 2, 3]


def test_initialize_with_distinct_holders(acct, metrics):
    token = TokenLedger(metrics=metrics, config=TokenConfig(name="Other", symbol="OTH", decimals=6))
    token.initialize(acct.A, acct.B, acct.C)
    assert token.name() == "Other"
    assert token.decimals() == 6
    assert token.role_members(DEFAULT_ADMIN_ROLE) == [acct.A]
    assert token.role_members(MINTER_ROLE) == [acct.B]
    assert token.role_members(BURNER_ROLE) == [acct.C]
    # caller defaults to the null account
    assert all(r.event.sender == ZERO_ADDRESS for r in token.events.records(name="RoleGranted"))


@pytest.mark.parametrize("args", [("A", "A", "A"), ("B", "C", "D")])
def test_second_initialize_always_fails(ledger, acct, args):
    before = dict(ledger.storage.data)
    n_events = len(ledger.events)
    holders = [getattr(acct, a) for a in args]
    with pytest.raises(AlreadyInitialized) as ei:
        ledger.initialize(*holders, caller=acct.B)
    assert ei.value.reason == "already_initialized"
    assert ledger.storage.data == before
    assert len(ledger.events) == n_events


def test_uninitialized_ledger_has_no_roles(acct, metrics):
    token = TokenLedger(metrics=metrics)
    assert not token.is_initialized()
    assert not token.has_role(MINTER_ROLE, acct.A)
    assert token.name() == ""
