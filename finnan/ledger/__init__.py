"""Ledger package: transaction mutations and their side effects."""

from finnan.ledger.engine import (
    LedgerEngine,
    next_installment,
    previous_installment,
    reversal_amount,
    signed_amount,
    transaction_view,
)

__all__ = [
    "LedgerEngine",
    "next_installment",
    "previous_installment",
    "reversal_amount",
    "signed_amount",
    "transaction_view",
]
