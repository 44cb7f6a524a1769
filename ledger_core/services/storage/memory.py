"""
In-Memory Storage Implementation

Keeps everything in process memory. Used by the test-suite and as the
default backend of create_ledger().

TRADEOFFS:
- Nothing survives the process
- No locking (the ledger core is single-threaded by contract)
- Filtering is a linear scan, fine for tests and small ledgers
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from ledger_core.models.account import Account
from ledger_core.models.audit import AuditEvent
from ledger_core.models.transaction import Transaction
from ledger_core.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dictionary-backed ledger storage.

    Transactions saved without an id get one assigned here. Stored
    transactions are snapshots: changing the caller's object after saving,
    or an object returned by list_transactions, does not touch history.
    """

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}
        self._transactions: dict[UUID, Transaction] = {}

    def add_account(self, account: Account) -> None:
        """Register an account. Account management lives outside the core."""
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts[account.id] = account

    def get_account(self, account_id: UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def save_transaction(self, transaction: Transaction) -> None:
        if transaction.id is None:
            transaction.id = uuid4()
        elif transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")

        self._transactions[transaction.id] = transaction.model_copy()

    def list_transactions(
        self,
        account_id: UUID,
        date_to: datetime,
        date_from: Optional[datetime] = None,
    ) -> list[Transaction]:
        results = []
        for transaction in self._transactions.values():
            if transaction.timestamp > date_to:
                continue
            if date_from and transaction.timestamp < date_from:
                continue
            if not transaction.entries_for(account_id):
                continue
            results.append(transaction.model_copy())

        results.sort(key=lambda t: t.timestamp)
        return results

    @property
    def transaction_count(self) -> int:
        return len(self._transactions)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
