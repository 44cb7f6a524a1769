"""
Abstract Storage Interface

DESIGN DECISION: The ledger never talks to a database directly. It is
handed an implementation of this interface when it is built. This allows us to:
1. Plug in any persistence engine without touching the core
2. Use in-memory storage for testing
3. Keep the invariant logic decoupled from persistence

The interface is intentionally narrow - saving a transaction that already
passed the balance check, and reading back what balance queries need.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from ledger_core.models.account import Account
from ledger_core.models.audit import AuditEvent
from ledger_core.models.transaction import Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (PostgreSQL, key-value store, etc.)
    must implement these methods.
    """

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> None:
        """
        Persist a transaction that has already passed the balance check.

        Args:
            transaction: The transaction to save

        Raises:
            DuplicateError: If a transaction with the same id exists
            StorageError: If the save fails for any other reason
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        account_id: UUID,
        date_to: datetime,
        date_from: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        List transactions with at least one entry for an account.

        Args:
            account_id: Account the entries must belong to
            date_to: Include transactions with timestamp on or before this
            date_from: Include transactions with timestamp on or after this

        Returns:
            Matching transactions, regular and closing alike
        """
        pass

    @abstractmethod
    def get_account(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
