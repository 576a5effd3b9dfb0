"""
token_ledger.tests.conftest
===========================

Shared fixtures:

- ``acct``: four deterministic local accounts A, B, C, D (A = account 0).
- ``metrics``: a `LedgerMetrics` on its own registry, so counters start at 0.
- ``ledger``: a standalone `TokenLedger` initialized with (A, A, A).
- ``deployment``: the full module deployed on a fresh local network
  (implementation, proxy admin, initialized proxy).

Configuration environment variables are cleared for every test so a developer
shell cannot leak a mainnet profile into the suite.
"""
from __future__ import annotations

import os
from types import SimpleNamespace

import pytest
from prometheus_client import CollectorRegistry

from token_ledger.config import LedgerConfig
from token_ledger.deploy import LocalNetwork, deploy_token_ledger
from token_ledger.metrics import LedgerMetrics
from token_ledger.token import TokenLedger

_CONFIG_ENV = (
    "TOKEN_LEDGER_NAME",
    "TOKEN_LEDGER_SYMBOL",
    "TOKEN_LEDGER_DECIMALS",
    "TOKEN_LEDGER_NETWORK",
    "TOKEN_LEDGER_RPC_URL",
    "TOKEN_LEDGER_CHAIN_ID",
    "TOKEN_LEDGER_LOG_LEVEL",
    "TOKEN_LEDGER_STATE",
    "DEFAULT_ADMIN_ADDRESS",
    "MINTER_ADDRESS",
    "BURNER_ADDRESS",
)

os.environ.setdefault("TZ", "UTC")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def acct() -> SimpleNamespace:
    a, b, c, d = LocalNetwork().accounts[:4]
    return SimpleNamespace(A=a, B=b, C=c, D=d)


@pytest.fixture
def metrics() -> LedgerMetrics:
    return LedgerMetrics(CollectorRegistry())


@pytest.fixture
def ledger(acct: SimpleNamespace, metrics: LedgerMetrics) -> TokenLedger:
    token = TokenLedger(metrics=metrics)
    token.initialize(acct.A, acct.A, acct.A, caller=acct.A)
    return token


@pytest.fixture
def deployment():
    return deploy_token_ledger(LedgerConfig())
