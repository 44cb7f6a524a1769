"""
Balance Aggregation

DESIGN DECISION: Storage hands back transactions; which entries count
towards a balance is decided here, so every storage backend produces the
same numbers.

An entry counts towards the balance of an account when:
- it belongs to that account,
- its transaction's timestamp is on or before the cut-off, and
- its transaction is Regular, or closing transactions were asked for.
"""

from typing import Iterable
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, field_validator

from ledger_core.models.transaction import Transaction, TransactionType, ensure_aware


class BalanceQuery(BaseModel):
    """Which entries to sum for one account balance."""
    model_config = ConfigDict(frozen=True)

    account_id: UUID
    until: AwareDatetime
    include_closed: bool = False

    @field_validator('until', mode='before')
    @classmethod
    def assume_utc(cls, v):
        """Naive cut-offs are read as UTC."""
        return ensure_aware(v)


def transaction_qualifies(transaction: Transaction, query: BalanceQuery) -> bool:
    if transaction.timestamp > query.until:
        return False
    if transaction.transaction_type == TransactionType.CLOSING:
        return query.include_closed
    return True


def aggregate_balance(
    query: BalanceQuery,
    transactions: Iterable[Transaction],
) -> int:
    """
    Sum the entry amounts for query.account_id over qualifying transactions.

    Entries for other accounts and transactions outside the query are
    ignored, so storage may over-fetch safely. Order does not matter.
    """
    return sum(
        entry.amount
        for transaction in transactions
        if transaction_qualifies(transaction, query)
        for entry in transaction.entries_for(query.account_id)
    )
