from __future__ import annotations

import pytest

from token_ledger.address import ZERO_ADDRESS
from token_ledger.errors import (InsufficientAllowance, InsufficientBalance,
                                 InvalidApprover, InvalidReceiver,
                                 InvalidSpender)
from token_ledger.events import Approval, Transfer
from token_ledger.safe_uint import U256_MAX


@pytest.fixture
def funded(ledger, acct):
    ledger.mint(acct.A, acct.B, 100)
    return ledger


def test_transfer_moves_balance(funded, acct):
    assert funded.transfer(acct.B, acct.C, 40) is True
    assert funded.balance_of(acct.B) == 60
    assert funded.balance_of(acct.C) == 40
    assert funded.total_supply() == 100
    assert list(funded.events)[-1].event == Transfer(sender=acct.B, receiver=acct.C, value=40)


def test_transfer_insufficient_balance_leaves_state(funded, acct):
    before = dict(funded.storage.data)
    n_events = len(funded.events)
    with pytest.raises(InsufficientBalance) as ei:
        funded.transfer(acct.B, acct.C, 150)
    assert (ei.value.account, ei.value.available, ei.value.requested) == (acct.B, 100, 150)
    assert funded.balance_of(acct.B) == 100
    assert funded.storage.data == before
    assert len(funded.events) == n_events


def test_transfer_to_null_account(funded, acct):
    with pytest.raises(InvalidReceiver) as ei:
        funded.transfer(acct.B, ZERO_ADDRESS, 1)
    assert ei.value.receiver == ZERO_ADDRESS


def test_self_transfer_and_zero_value(funded, acct):
    funded.transfer(acct.B, acct.B, 100)
    funded.transfer(acct.B, acct.C, 0)
    assert funded.balance_of(acct.B) == 100
    assert funded.balance_of(acct.C) == 0


def test_addresses_are_case_insensitive(funded, acct):
    funded.transfer(acct.B, acct.C.upper().replace("0X", "0x"), 1)
    assert funded.balance_of(acct.C) == 1


# ----------------------------------------------------------- allowances -----


def test_approve_sets_absolute_allowance(funded, acct):
    assert funded.approve(acct.B, acct.D, 200) is True
    funded.approve(acct.B, acct.D, 50)
    assert funded.allowance(acct.B, acct.D) == 50
    assert list(funded.events)[-1].event == Approval(owner=acct.B, spender=acct.D, value=50)


def test_approve_null_spender(funded, acct):
    with pytest.raises(InvalidSpender):
        funded.approve(acct.B, ZERO_ADDRESS, 1)


def test_approve_from_null_account(funded, acct):
    with pytest.raises(InvalidApprover):
        funded.approve(ZERO_ADDRESS, acct.B, 1)


def test_transfer_from_moves_and_decrements(ledger, acct):
    ledger.mint(acct.A, acct.B, 200)
    ledger.approve(acct.B, acct.D, 200)
    n_approvals = len(ledger.events.records(name="Approval"))
    ledger.transfer_from(acct.D, acct.B, acct.C, 150)
    assert ledger.balance_of(acct.C) == 150
    assert ledger.balance_of(acct.B) == 50
    assert ledger.allowance(acct.B, acct.D) == 50
    # consumption does not emit Approval
    assert len(ledger.events.records(name="Approval")) == n_approvals


def test_transfer_from_checks_allowance_first(funded, acct):
    funded.approve(acct.B, acct.D, 10)
    with pytest.raises(InsufficientAllowance) as ei:
        funded.transfer_from(acct.D, acct.B, ZERO_ADDRESS, 1000)
    assert (ei.value.available, ei.value.requested) == (10, 1000)


def test_transfer_from_receiver_checked_before_balance(funded, acct):
    funded.approve(acct.B, acct.D, 10**6)
    with pytest.raises(InvalidReceiver):
        funded.transfer_from(acct.D, acct.B, ZERO_ADDRESS, 1000)


def test_transfer_from_balance_binding(funded, acct):
    funded.approve(acct.B, acct.D, 500)
    with pytest.raises(InsufficientBalance):
        funded.transfer_from(acct.D, acct.B, acct.C, 150)
    assert funded.allowance(acct.B, acct.D) == 500


def test_infinite_allowance_is_not_consumed(funded, acct):
    funded.approve(acct.B, acct.D, U256_MAX)
    funded.transfer_from(acct.D, acct.B, acct.C, 60)
    assert funded.allowance(acct.B, acct.D) == U256_MAX
    assert funded.balance_of(acct.C) == 60
