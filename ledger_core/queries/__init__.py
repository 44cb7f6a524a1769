"""Balance query package."""

from ledger_core.queries.balances import (
    BalanceQuery,
    aggregate_balance,
    transaction_qualifies,
)

__all__ = ["BalanceQuery", "aggregate_balance", "transaction_qualifies"]
