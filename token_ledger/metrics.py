"""
token_ledger.metrics
====================

Prometheus metrics for ledger calls. Metrics live on a dedicated
`CollectorRegistry` so importing this module never collides with an
application's default registry.

Typical usage:

    from .metrics import LEDGER_METRICS as LM

    LM.record_call("transfer")
    LM.record_revert("transfer", reason="insufficient_balance")
    LM.set_total_supply(ledger.total_supply())

Exposed metrics
---------------
Counters
- token_ledger_calls_total{op}
- token_ledger_reverts_total{op,reason}

Gauges
- token_ledger_total_supply
"""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class LedgerMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry(auto_describe=True)
        self.calls = Counter(
            "token_ledger_calls_total",
            "Committed ledger calls by operation",
            ["op"],
            registry=self.registry,
        )
        self.reverts = Counter(
            "token_ledger_reverts_total",
            "Reverted ledger calls by operation and error reason",
            ["op", "reason"],
            registry=self.registry,
        )
        self.total_supply = Gauge(
            "token_ledger_total_supply",
            "Total supply after the last committed supply change",
            registry=self.registry,
        )

    def record_call(self, op: str) -> None:
        self.calls.labels(op=op).inc()

    def record_revert(self, op: str, reason: str) -> None:
        self.reverts.labels(op=op, reason=reason).inc()

    def set_total_supply(self, value: int) -> None:
        # float gauge: exact only up to 2**53
        self.total_supply.set(float(value))

    def render(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)


LEDGER_METRICS = LedgerMetrics()

__all__ = ["LedgerMetrics", "LEDGER_METRICS"]
