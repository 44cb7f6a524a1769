"""
Ledger orchestration tests.

Storage is replaced by in-memory storage or by recording doubles; no
test touches a real backend.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import pytest

from ledger_core.audit import AuditLogger, create_correlation_id
from ledger_core.ledger import Ledger, create_ledger
from ledger_core.models import (
    Account,
    AccountType,
    AuditEventType,
    Entry,
    SingleEntryTransactionError,
    Transaction,
    UnbalancedTransactionError,
)
from ledger_core.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class RecordingStorage(LedgerStorageInterface):
    """Test double that records every call and optionally fails saves."""

    def __init__(self, save_error: Optional[Exception] = None):
        self.saved: list[Transaction] = []
        self.save_calls = 0
        self._save_error = save_error

    def save_transaction(self, transaction: Transaction) -> None:
        self.save_calls += 1
        if self._save_error is not None:
            raise self._save_error
        self.saved.append(transaction)

    def list_transactions(
        self,
        account_id: UUID,
        date_to: datetime,
        date_from: Optional[datetime] = None,
    ) -> list[Transaction]:
        return list(self.saved)

    def get_account(self, account_id: UUID) -> Optional[Account]:
        return None


def pair(now, debit_account, credit_account, amount, closing=False) -> Transaction:
    transaction = Transaction.closing(now) if closing else Transaction.regular(now)
    transaction.add_entries([
        Entry(account_id=debit_account.id, amount=amount),
        Entry(account_id=credit_account.id, amount=-amount),
    ])
    return transaction


class TestAddTransaction:
    """Tests for Ledger.add_transaction."""

    def test_balanced_transaction_is_saved(self, now, cash, revenue):
        """Test a balanced transaction reaches storage exactly once."""
        storage = RecordingStorage()
        ledger = Ledger(storage)
        transaction = pair(now, cash, revenue, 100)

        ledger.add_transaction(transaction)

        assert storage.save_calls == 1
        assert storage.saved == [transaction]

    def test_scenario_e_unbalanced_never_reaches_storage(self, now, cash, revenue):
        """Test an unbalanced transaction is refused without calling save."""
        storage = RecordingStorage()
        ledger = Ledger(storage)
        transaction = pair(now, cash, revenue, 100)
        transaction.add_entry(Entry(account_id=cash.id, amount=100))

        with pytest.raises(UnbalancedTransactionError):
            ledger.add_transaction(transaction)

        assert storage.save_calls == 0

    def test_single_entry_never_reaches_storage(self, now, cash):
        """Test a single-entry transaction is refused without calling save."""
        storage = RecordingStorage()
        ledger = Ledger(storage)
        transaction = Transaction(timestamp=now)
        transaction.add_entry(Entry(account_id=cash.id, amount=-100))

        with pytest.raises(SingleEntryTransactionError, match="only one entry"):
            ledger.add_transaction(transaction)

        assert storage.save_calls == 0

    def test_empty_transaction_is_forwarded(self, now):
        """Test an empty transaction counts as balanced and is saved."""
        storage = RecordingStorage()
        ledger = Ledger(storage)

        ledger.add_transaction(Transaction(timestamp=now))

        assert storage.save_calls == 1

    def test_storage_error_is_relayed_unchanged(self, now, cash, revenue):
        """Test the exact storage error reaches the caller."""
        failure = StorageError("disk full")
        ledger = Ledger(RecordingStorage(save_error=failure))

        with pytest.raises(StorageError) as exc_info:
            ledger.add_transaction(pair(now, cash, revenue, 100))

        assert exc_info.value is failure

    def test_non_storage_errors_are_relayed_too(self, now, cash, revenue):
        """Test the ledger does not wrap unexpected storage failures."""
        failure = OSError("connection reset")
        ledger = Ledger(RecordingStorage(save_error=failure))

        with pytest.raises(OSError) as exc_info:
            ledger.add_transaction(pair(now, cash, revenue, 100))

        assert exc_info.value is failure

    def test_duplicate_id_is_rejected_by_storage(self, now, cash, revenue):
        """Test DuplicateError from in-memory storage propagates."""
        ledger = Ledger(InMemoryLedgerStorage())
        transaction_id = uuid4()

        first = pair(now, cash, revenue, 100)
        first.id = transaction_id
        ledger.add_transaction(first)

        second = pair(now, cash, revenue, 50)
        second.id = transaction_id
        with pytest.raises(DuplicateError):
            ledger.add_transaction(second)

    def test_storage_assigns_missing_id(self, now, cash, revenue):
        """Test in-memory storage gives transactions without id one."""
        ledger = Ledger(InMemoryLedgerStorage())
        transaction = pair(now, cash, revenue, 100)

        ledger.add_transaction(transaction)

        assert isinstance(transaction.id, UUID)


class TestAccountBalances:
    """Tests for balance queries."""

    @pytest.fixture
    def ledger(self, cash, revenue, expense, equity):
        """
        January: sale of 1000, closing of revenue into equity on the 31st.
        February: rent of 300 paid in cash.
        """
        storage = InMemoryLedgerStorage()
        for account in (cash, revenue, expense, equity):
            storage.add_account(account)

        ledger = Ledger(storage, clock=lambda: utc(2024, 3, 1))
        ledger.add_transaction(pair(utc(2024, 1, 10), cash, revenue, 1000))
        ledger.add_transaction(
            pair(utc(2024, 1, 31), revenue, equity, 1000, closing=True)
        )
        ledger.add_transaction(pair(utc(2024, 2, 5), expense, cash, 300))
        return ledger

    def test_balance_at_excludes_closing(self, ledger, revenue):
        """Test get_account_balance_at ignores closing transactions."""
        balance = ledger.get_account_balance_at(revenue.id, utc(2024, 1, 31))
        assert balance.balance == -1000
        assert balance.account_type == AccountType.REVENUE
        assert balance.timestamp == utc(2024, 1, 31)

    def test_balance_closed_at_includes_closing(self, ledger, revenue, equity):
        """Test get_account_balance_closed_at counts closing transactions."""
        assert ledger.get_account_balance_closed_at(revenue.id, utc(2024, 1, 31)).balance == 0
        assert ledger.get_account_balance_closed_at(equity.id, utc(2024, 1, 31)).balance == -1000
        assert ledger.get_account_balance_at(equity.id, utc(2024, 1, 31)).balance == 0

    def test_cutoff_is_inclusive(self, ledger, cash):
        """Test a transaction exactly at the cut-off is counted."""
        assert ledger.get_account_balance_at(cash.id, utc(2024, 1, 10)).balance == 1000
        just_before = utc(2024, 1, 10) - timedelta(microseconds=1)
        assert ledger.get_account_balance_at(cash.id, just_before).balance == 0

    def test_balance_moves_over_time(self, ledger, cash, expense):
        """Test later transactions only count after their timestamp."""
        assert ledger.get_account_balance_at(cash.id, utc(2024, 1, 20)).balance == 1000
        assert ledger.get_account_balance_at(cash.id, utc(2024, 2, 10)).balance == 700
        assert ledger.get_account_balance_at(expense.id, utc(2024, 2, 10)).balance == 300

    def test_current_balance_uses_clock(self, ledger, cash, revenue):
        """Test the current balance is taken at the clock's now."""
        current = ledger.get_current_account_balance(cash.id, include_closed=False)
        assert current.balance == 700
        assert current.timestamp == utc(2024, 3, 1)

        assert ledger.get_current_account_balance(revenue.id, include_closed=False).balance == -1000
        assert ledger.get_current_account_balance(revenue.id, include_closed=True).balance == 0

    def test_account_without_entries(self, ledger):
        """Test a registered account with no entries has a zero balance."""
        idle = Account(name="Savings", account_type=AccountType.ASSET)
        ledger.storage.add_account(idle)
        assert ledger.get_account_balance_at(idle.id, utc(2024, 2, 10)).balance == 0

    def test_unknown_account(self, ledger):
        """Test an unknown account raises NotFoundError."""
        with pytest.raises(NotFoundError, match="Account not found"):
            ledger.get_account_balance_at(uuid4(), utc(2024, 2, 10))

    def test_naive_cutoff_is_read_as_utc(self, ledger, cash):
        """Test a naive cut-off gives the same balance as its UTC equivalent."""
        naive = ledger.get_account_balance_at(cash.id, datetime(2024, 2, 10))
        aware = ledger.get_account_balance_at(cash.id, utc(2024, 2, 10))

        assert naive.balance == aware.balance == 700
        assert naive.timestamp == utc(2024, 2, 10)

    def test_naive_transaction_timestamp_is_read_as_utc(self, ledger, cash, expense):
        """Test a transaction built from a naive datetime sorts like UTC."""
        ledger.add_transaction(pair(datetime(2024, 2, 20), expense, cash, 50))

        assert ledger.get_account_balance_at(cash.id, utc(2024, 2, 19)).balance == 700
        assert ledger.get_account_balance_at(cash.id, utc(2024, 2, 20)).balance == 650

    def test_edits_after_saving_do_not_change_balances(self, ledger, cash, revenue):
        """Test adding an entry to a saved transaction leaves history intact."""
        sale = pair(utc(2024, 2, 15), cash, revenue, 100)
        ledger.add_transaction(sale)

        sale.add_entry(Entry(account_id=cash.id, amount=5000))

        assert ledger.get_account_balance_at(cash.id, utc(2024, 2, 28)).balance == 800
        stored = [
            t for t in ledger.storage.list_transactions(cash.id, date_to=utc(2024, 2, 28))
            if t.id == sale.id
        ]
        assert len(stored) == 1
        assert stored[0].is_balanced() == (True, None)

    def test_journal_id_survives_save(self, ledger, cash, revenue):
        """Test a journal_id set before saving is returned by storage."""
        journal_id = uuid4()
        sale = pair(utc(2024, 2, 15), cash, revenue, 100)
        sale.journal_id = journal_id
        ledger.add_transaction(sale)

        (stored,) = [
            t for t in ledger.storage.list_transactions(cash.id, date_to=utc(2024, 2, 28))
            if t.id == sale.id
        ]
        assert stored.journal_id == journal_id

    def test_default_clock_is_aware(self, cash):
        """Test the default clock produces a timezone-aware timestamp."""
        storage = InMemoryLedgerStorage()
        storage.add_account(cash)
        balance = Ledger(storage).get_current_account_balance(cash.id, include_closed=True)
        assert balance.timestamp.tzinfo is not None
        assert balance.balance == 0


class TestLedgerAudit:
    """Tests for the audit trail written by the ledger."""

    def test_saved_transaction_is_audited(self, now, cash, revenue):
        """Test a saved transaction produces a transaction_saved event."""
        audit_storage = InMemoryAuditStorage()
        ledger = Ledger(InMemoryLedgerStorage(), audit_logger=AuditLogger(audit_storage))
        correlation_id = create_correlation_id()
        transaction = pair(now, cash, revenue, 100)

        ledger.add_transaction(transaction, correlation_id=correlation_id)

        events = audit_storage.get_events_by_entity("transaction", transaction.id)
        assert [e.event_type for e in events] == [AuditEventType.TRANSACTION_SAVED]
        assert events[0].correlation_id == correlation_id

    def test_rejected_transaction_is_audited(self, now, cash):
        """Test a refused transaction leaves a warning with its error code."""
        audit_storage = InMemoryAuditStorage()
        ledger = Ledger(RecordingStorage(), audit_logger=AuditLogger(audit_storage))
        transaction = Transaction(timestamp=now)
        transaction.add_entry(Entry(account_id=cash.id, amount=5))

        with pytest.raises(SingleEntryTransactionError):
            ledger.add_transaction(transaction)

        [event] = audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.TRANSACTION_REJECTED
        assert event.error_code == "SINGLE_ENTRY_TRANSACTION"

    def test_empty_transaction_is_flagged(self, now):
        """Test an empty transaction is flagged before it is saved."""
        audit_storage = InMemoryAuditStorage()
        ledger = Ledger(RecordingStorage(), audit_logger=AuditLogger(audit_storage))

        ledger.add_transaction(Transaction(timestamp=now))

        event_types = [e.event_type for e in reversed(audit_storage.get_recent_events())]
        assert event_types == [
            AuditEventType.EMPTY_TRANSACTION_FLAGGED,
            AuditEventType.TRANSACTION_SAVED,
        ]

    def test_save_failure_is_audited(self, now, cash, revenue):
        """Test storage failures are recorded and still raised."""
        audit_storage = InMemoryAuditStorage()
        ledger = Ledger(
            RecordingStorage(save_error=StorageError("read-only")),
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(StorageError):
            ledger.add_transaction(pair(now, cash, revenue, 100))

        [event] = audit_storage.get_recent_events()
        assert event.event_type == AuditEventType.SAVE_FAILED
        assert event.error_message == "read-only"

    def test_balance_query_is_audited(self, now, cash, revenue):
        """Test balance computations are recorded against the account."""
        storage = InMemoryLedgerStorage()
        storage.add_account(cash)
        audit_storage = InMemoryAuditStorage()
        ledger = Ledger(storage, audit_logger=AuditLogger(audit_storage))
        ledger.add_transaction(pair(now, cash, revenue, 250))

        ledger.get_account_balance_closed_at(cash.id, now)

        [event] = audit_storage.get_events_by_entity("account", cash.id)
        assert event.event_type == AuditEventType.BALANCE_COMPUTED
        assert event.details["balance"] == 250


class TestCreateLedger:
    """Tests for the settings-driven factory."""

    def test_defaults_to_in_memory_storage(self):
        """Test the factory falls back to in-memory storage."""
        ledger = create_ledger()
        assert isinstance(ledger.storage, InMemoryLedgerStorage)

    def test_uses_given_storage(self):
        """Test the factory keeps an injected backend."""
        storage = RecordingStorage()
        assert create_ledger(storage=storage).storage is storage

    def test_audit_enabled_by_default(self, now, cash, revenue):
        """Test events reach the given audit storage by default."""
        audit_storage = InMemoryAuditStorage()
        ledger = create_ledger(audit_storage=audit_storage)

        ledger.add_transaction(pair(now, cash, revenue, 10))

        assert len(audit_storage.get_recent_events()) == 1

    def test_audit_disabled(self, now, cash, revenue, monkeypatch):
        """Test AUDIT_ENABLED=false writes no events."""
        monkeypatch.setenv("AUDIT_ENABLED", "false")
        audit_storage = InMemoryAuditStorage()
        ledger = create_ledger(audit_storage=audit_storage)

        ledger.add_transaction(pair(now, cash, revenue, 10))

        assert audit_storage.get_recent_events() == []

    def test_audit_not_persisted(self, now, cash, revenue, monkeypatch):
        """Test AUDIT_PERSIST_EVENTS=false keeps events out of storage."""
        monkeypatch.setenv("AUDIT_PERSIST_EVENTS", "false")
        audit_storage = InMemoryAuditStorage()
        ledger = create_ledger(audit_storage=audit_storage)

        ledger.add_transaction(pair(now, cash, revenue, 10))

        assert audit_storage.get_recent_events() == []
