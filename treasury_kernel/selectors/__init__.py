"""Selectors for the treasury kernel (read side)."""

from treasury_kernel.selectors.ledger_aggregator import LedgerAggregator

__all__ = [
    "LedgerAggregator",
]
