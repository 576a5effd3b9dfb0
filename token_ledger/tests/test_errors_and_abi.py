from __future__ import annotations

import pytest

from token_ledger.abi import (abi_table, encode_function_call, invoke,
                              resolve, selector)
from token_ledger.address import (ZERO_ADDRESS, contract_address, is_address,
                                  is_zero, keccak256, normalize_address)
from token_ledger.errors import (InsufficientBalance, LedgerError,
                                 LedgerErrorCode, ProxyError, Unauthorized,
                                 UnknownFunction)
from token_ledger.events import EventLog, RoleGranted, Transfer, event_from_dict
from token_ledger.roles import MINTER_ROLE
from token_ledger.token import TokenLedger

# ------------------------------------------------------------- errors -------


def test_error_payload():
    err = InsufficientBalance("0xab", 100, 150)
    assert isinstance(err, LedgerError)
    assert err.code == LedgerErrorCode.INSUFFICIENT_BALANCE
    assert err.to_dict() == {
        "code": 1020,
        "reason": "insufficient_balance",
        "message": "balance 100 < requested 150",
        "context": {"account": "0xab", "available": 100, "requested": 150},
    }
    assert str(err) == "insufficient_balance: balance 100 < requested 150 [account=0xab, available=100, requested=150]"


def test_role_context_is_hex():
    err = Unauthorized("0xab", MINTER_ROLE)
    assert err.to_dict()["context"]["role"] == "0x" + MINTER_ROLE.hex()
    assert err.role == MINTER_ROLE


def test_proxy_errors_share_a_base():
    err = UnknownFunction("pause()")
    assert isinstance(err, ProxyError)
    assert err.code == LedgerErrorCode.UNKNOWN_FUNCTION
    with pytest.raises(LedgerError):
        raise err


# ------------------------------------------------------------ address -------


def test_keccak_vectors():
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_normalize_address(acct):
    raw = bytes.fromhex(acct.A[2:])
    assert normalize_address(raw) == acct.A
    assert normalize_address(acct.A[2:].upper()) == acct.A
    assert is_address(acct.A)
    assert is_zero("0x" + "00" * 20)
    for bad in ("0x1234", b"\x00" * 19, 42, "0x" + "zz" * 20):
        with pytest.raises(ValueError):
            normalize_address(bad)


def test_contract_address_depends_on_nonce(acct):
    assert contract_address(acct.A, 0) != contract_address(acct.A, 1)
    assert contract_address(acct.A, 0) != contract_address(acct.B, 0)
    assert is_address(contract_address(acct.A, 0))


# ---------------------------------------------------------------- abi -------


def test_selectors():
    assert selector("transfer(address,uint256)").hex() == "a9059cbb"
    assert selector("balanceOf(address)").hex() == "70a08231"
    assert selector("approve(address, uint256)").hex() == "095ea7b3"


def test_abi_table_covers_ledger_surface():
    table = abi_table(TokenLedger)
    assert table["burn(uint256)"].method == "burn"
    assert table["burn(address,uint256)"].method == "burn_as_burner"
    assert table["transferFrom(address,address,uint256)"].arity == 3
    assert table["totalSupply()"].arity == 0
    assert len({fn.selector for fn in table.values()}) == len(table)


def test_resolve_by_name_and_arity():
    assert resolve(TokenLedger, "burn", 1).signature == "burn(uint256)"
    assert resolve(TokenLedger, "burn", 2).signature == "burn(address,uint256)"
    with pytest.raises(UnknownFunction):
        resolve(TokenLedger, "burn", 3)


def test_encode_and_invoke(ledger, acct):
    call = encode_function_call(TokenLedger, "mint", [acct.B, 9])
    assert call.data == "0x" + selector("mint(address,uint256)").hex()
    assert call.to_dict()["args"] == [acct.B, 9]
    invoke(ledger, acct.A, call)
    assert invoke(ledger, ZERO_ADDRESS, encode_function_call(ledger, "balanceOf", [acct.B])) == 9


# ------------------------------------------------------------- events -------


def test_event_round_trip_through_json(acct):
    ev = RoleGranted(role=MINTER_ROLE, account=acct.B, sender=acct.A)
    d = ev.to_dict()
    assert d["args"]["role"] == "0x" + MINTER_ROLE.hex()
    assert event_from_dict(d) == ev
    with pytest.raises(ValueError):
        event_from_dict({"event": "Paused", "args": {}})


def test_event_log_filters(acct):
    log = EventLog()
    log.extend("0x01", [Transfer(sender=acct.A, receiver=acct.B, value=1)])
    log.extend("0x02", [Transfer(sender=acct.B, receiver=acct.C, value=2)])
    assert [r.log_index for r in log.records(emitter="0x02")] == [1]
    assert [r.event.value for r in log.records(name="Transfer", from_index=1)] == [2]
    restored = EventLog.from_list(log.to_list())
    assert [r.to_dict() for r in restored] == log.to_list()
