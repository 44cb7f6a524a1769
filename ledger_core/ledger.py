"""
Ledger Orchestrator

Ties the invariant model to a storage backend:
1. Add transaction (validate → refuse or save)
2. Account balance (look up account → fetch transactions → aggregate)

DESIGN DECISION: The ledger enforces the boundary:
- Nothing reaches storage unless it passed the balance check
- Storage errors are passed to the caller untouched
- No balances or transactions are cached here

The ledger is synchronous and holds no locks. Callers sharing one
instance across threads must serialise access themselves.
"""

from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from ledger_core.audit import AuditLogger
from ledger_core.config import get_settings
from ledger_core.models.account import AccountBalance
from ledger_core.models.audit import AuditEventBuilder
from ledger_core.models.transaction import Transaction
from ledger_core.queries import BalanceQuery, aggregate_balance
from ledger_core.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Ledger:
    """
    A collection of transactions behind a storage backend.

    Flow for add_transaction:
    1. Balance check → unbalanced transactions are refused, storage untouched
    2. Save → delegated to storage, its errors propagate unchanged
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            storage: Backend used for the whole lifetime of the ledger
            audit_logger: Optional audit trail
            clock: Returns "now" as an aware datetime, used by
                get_current_account_balance
        """
        self._storage = storage
        self._audit_logger = audit_logger
        self._clock = clock or _utcnow

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    def add_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Validate a transaction and hand it to storage.

        Raises:
            SingleEntryTransactionError: Exactly one entry
            UnbalancedTransactionError: Entry amounts do not sum to zero
            StorageError: Whatever storage reports, unchanged

        A transaction without entries counts as balanced and is forwarded;
        the accompanying flag is recorded in the audit trail.
        """
        balanced, error = transaction.is_balanced()

        if not balanced:
            if self._audit_logger:
                self._audit_logger.log(
                    AuditEventBuilder.transaction_rejected(
                        error_code=error.code,
                        error_message=str(error),
                        details=transaction.to_log_dict(),
                        correlation_id=correlation_id,
                    )
                )
            raise error

        if error is not None and self._audit_logger:
            self._audit_logger.log(
                AuditEventBuilder.empty_transaction_flagged(
                    details=transaction.to_log_dict(),
                    correlation_id=correlation_id,
                )
            )

        try:
            self._storage.save_transaction(transaction)
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log(
                    AuditEventBuilder.save_failed(
                        error_message=str(e),
                        details=transaction.to_log_dict(),
                        correlation_id=correlation_id,
                    )
                )
            raise

        if self._audit_logger:
            self._audit_logger.log(
                AuditEventBuilder.transaction_saved(
                    transaction_id=transaction.id,
                    entry_count=transaction.entry_count,
                    correlation_id=correlation_id,
                )
            )

    def get_current_account_balance(
        self,
        account_id: UUID,
        include_closed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AccountBalance:
        """Balance as of now, with or without closing transactions."""
        return self._get_account_balance(
            account_id, self._clock(), include_closed, correlation_id
        )

    def get_account_balance_at(
        self,
        account_id: UUID,
        time: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AccountBalance:
        """Balance at a given time, ignoring closing transactions."""
        return self._get_account_balance(account_id, time, False, correlation_id)

    def get_account_balance_closed_at(
        self,
        account_id: UUID,
        time: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AccountBalance:
        """Balance at a given time, counting closing transactions."""
        return self._get_account_balance(account_id, time, True, correlation_id)

    def _get_account_balance(
        self,
        account_id: UUID,
        until: datetime,
        include_closed: bool,
        correlation_id: Optional[UUID],
    ) -> AccountBalance:
        account = self._storage.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        query = BalanceQuery(
            account_id=account_id,
            until=until,
            include_closed=include_closed,
        )
        transactions = self._storage.list_transactions(account_id, date_to=query.until)
        balance = aggregate_balance(query, transactions)

        if self._audit_logger:
            self._audit_logger.log(
                AuditEventBuilder.balance_computed(
                    account_id=account_id,
                    balance=balance,
                    until=query.until,
                    include_closed=include_closed,
                    correlation_id=correlation_id,
                )
            )

        return AccountBalance(
            account_id=account_id,
            account_type=account.account_type,
            balance=balance,
            timestamp=query.until,
        )


def create_ledger(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> Ledger:
    """
    Build a ledger from settings.

    Falls back to in-memory storage when no backend is given. The audit
    logger is only attached when auditing is enabled.
    """
    audit_settings = get_settings().audit

    audit_logger = None
    if audit_settings.enabled:
        if audit_settings.persist_events:
            if audit_storage is None:
                audit_storage = InMemoryAuditStorage()
        else:
            audit_storage = None
        audit_logger = AuditLogger(audit_storage)

    if storage is None:
        storage = InMemoryLedgerStorage()

    return Ledger(
        storage=storage,
        audit_logger=audit_logger,
    )
