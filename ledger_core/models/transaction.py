"""
Transaction Models for Ledger Core

A transaction is an ordered collection of entries plus a type tag and a
timestamp. It owns the double-entry invariant: the amounts of all its
entries must sum to zero.

DESIGN DECISION: Entries carry signed amounts instead of debit/credit
sides. The account type already says whether an increase is a debit or a
credit, and signed integers keep the sum commutative and associative.

DESIGN DECISION: The invariant is checked on demand, not continuously.
A transaction may be unbalanced while it is being built. Corrections are
made by adding offsetting entries - there is no way to remove an entry or
change its amount.
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SerializationInfo,
    StrictInt,
    field_validator,
    model_serializer,
    model_validator,
)

from ledger_core.config import get_settings


def ensure_aware(value: Any) -> Any:
    """Treat naive datetimes as UTC. Other values pass through."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_metadata(metadata: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of metadata, raising ValueError if it breaks the configured limits."""
    limits = get_settings().ledger

    if len(metadata) > limits.max_metadata_entries:
        raise ValueError(
            f"Too many metadata entries: {len(metadata)} "
            f"(max {limits.max_metadata_entries})"
        )
    for key, value in metadata.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError("Metadata keys and values must be strings")
        if not key:
            raise ValueError("Metadata keys cannot be empty")
        if len(key) > limits.max_metadata_key_length:
            raise ValueError(f"Metadata key too long: {key[:20]}...")
        if len(value) > limits.max_metadata_value_length:
            raise ValueError(f"Metadata value too long for key: {key}")
    return dict(metadata)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Transaction classification.

    Closing transactions close the books at the end of an accounting
    period. They are validated exactly like regular ones; balance queries
    decide whether to count them.
    """
    REGULAR = "Regular"
    CLOSING = "Closing"


# =============================================================================
# ENTRY
# =============================================================================

class Entry(BaseModel):
    """
    A single immutable entry in a transaction.

    - A positive amount is an increase of the account balance
    - A negative amount is a decrease of the account balance

    Amounts are integers in the smallest currency unit. Floats are
    rejected rather than rounded.
    """
    model_config = ConfigDict(frozen=True)

    account_id: UUID
    amount: StrictInt = Field(
        ...,
        description="Signed amount in the smallest currency unit"
    )

    @property
    def is_increase(self) -> bool:
        return self.amount > 0

    @property
    def is_decrease(self) -> bool:
        return self.amount < 0


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single transaction in a ledger.

    The id is assigned by storage or by the caller, never here. Entries
    are kept in insertion order, which matters for display only.

    Entries and metadata are private state: they are only changed through
    add_entry/add_entries and set_metadata. Both are still accepted as
    constructor keywords and appear in model_dump(), so a dumped
    transaction validates back into an equal one.
    """
    id: Optional[UUID] = Field(
        default=None,
        description="Transaction ID, assigned by storage or caller"
    )
    journal_id: Optional[UUID] = Field(
        default=None,
        description="Journal this transaction is grouped under"
    )
    timestamp: AwareDatetime = Field(
        ...,
        description="When the transaction took effect (naive values are read as UTC)"
    )
    transaction_type: TransactionType = Field(
        default=TransactionType.REGULAR
    )

    _entries: list[Entry] = PrivateAttr(default_factory=list)
    _metadata: dict[str, str] = PrivateAttr(default_factory=dict)

    @field_validator('timestamp', mode='before')
    @classmethod
    def assume_utc(cls, v: Any) -> Any:
        return ensure_aware(v)

    @model_validator(mode='wrap')
    @classmethod
    def load_entries_and_metadata(cls, data: Any, handler) -> "Transaction":
        """Pull entries and metadata out of the input and install them as private state."""
        entries = metadata = None
        if isinstance(data, dict):
            data = dict(data)
            entries = data.pop("entries", None)
            metadata = data.pop("metadata", None)

        transaction = handler(data)

        if entries is not None:
            transaction._entries = [Entry.model_validate(e) for e in entries]
        if metadata is not None:
            transaction._metadata = _check_metadata(metadata)
        return transaction

    @model_serializer(mode='wrap')
    def dump_entries_and_metadata(self, handler, info: SerializationInfo) -> dict:
        data = handler(self)
        data["entries"] = [entry.model_dump(mode=info.mode) for entry in self._entries]
        data["metadata"] = dict(self._metadata)
        return data

    def __copy__(self) -> "Transaction":
        # model_copy() shares private values by default
        copied = super().__copy__()
        copied._entries = list(self._entries)
        copied._metadata = dict(self._metadata)
        return copied

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        timestamp: datetime,
        transaction_type: TransactionType,
    ) -> "Transaction":
        """Create an empty transaction with an explicit type."""
        return cls(timestamp=timestamp, transaction_type=transaction_type)

    @classmethod
    def regular(cls, timestamp: datetime) -> "Transaction":
        """Create an empty regular transaction."""
        return cls.create(timestamp, TransactionType.REGULAR)

    @classmethod
    def closing(cls, timestamp: datetime) -> "Transaction":
        """Create an empty closing transaction."""
        return cls.create(timestamp, TransactionType.CLOSING)

    # -------------------------------------------------------------------------
    # Mutation (append-only)
    # -------------------------------------------------------------------------

    @property
    def entries(self) -> tuple[Entry, ...]:
        """Entries in insertion order (read-only view)."""
        return tuple(self._entries)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def metadata(self) -> Mapping[str, str]:
        """Read-only view of the annotations. Use set_metadata to change them."""
        return MappingProxyType(self._metadata)

    def add_entry(self, entry: Entry) -> None:
        """Append one entry. No validation happens here."""
        self._entries.append(entry)

    def add_entries(self, entries: Iterable[Entry]) -> None:
        """Append entries in order, same as calling add_entry for each."""
        self._entries.extend(entries)

    def set_metadata(self, key: str, value: str) -> None:
        """Add or replace one metadata pair, subject to the configured bounds."""
        self._metadata = _check_metadata({**self._metadata, key: value})

    # -------------------------------------------------------------------------
    # Invariant & aggregates
    # -------------------------------------------------------------------------

    def is_balanced(self) -> tuple[bool, Optional["LedgerError"]]:
        """
        Check the double-entry invariant.

        - No entries: balanced, but an EmptyTransactionError is returned so
          callers can tell "nothing to validate" from "validated"
        - One entry: never balanced, value always moves between accounts
        - Two or more: balanced when the amounts sum to zero

        Always recomputed from the current entries. The error is returned,
        not raised.
        """
        if not self._entries:
            return True, EmptyTransactionError()

        if len(self._entries) == 1:
            return False, SingleEntryTransactionError()

        total = self.net_amount()
        if total != 0:
            return False, UnbalancedTransactionError(total)

        return True, None

    def net_amount(self) -> int:
        """Sum of all entry amounts. Zero for a balanced transaction."""
        return sum(entry.amount for entry in self._entries)

    def total_increases(self) -> int:
        """Sum of all positive amounts (>= 0)."""
        return sum(entry.amount for entry in self._entries if entry.amount > 0)

    def total_decreases(self) -> int:
        """
        Sum of all negative amounts.

        NOTE: The result is <= 0, it is NOT a magnitude. Callers computing
        turnover must negate it themselves:

            turnover = tx.total_increases() - tx.total_decreases()
        """
        return sum(entry.amount for entry in self._entries if entry.amount < 0)

    def entries_for(self, account_id: UUID) -> list[Entry]:
        """Entries touching one account, in insertion order."""
        return [entry for entry in self._entries if entry.account_id == account_id]

    def account_ids(self) -> list[UUID]:
        """Distinct accounts touched, in order of first appearance."""
        return list(dict.fromkeys(entry.account_id for entry in self._entries))

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "transaction_id": str(self.id) if self.id else None,
            "journal_id": str(self.journal_id) if self.journal_id else None,
            "timestamp": self.timestamp.isoformat(),
            "transaction_type": self.transaction_type.value,
            "entry_count": self.entry_count,
            "total_increases": self.total_increases(),
            "total_decreases": self.total_decreases(),
        }


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(Exception):
    """
    Base exception for invariant violations.

    Every subclass has a machine-readable `code`.
    """

    code: str = "LEDGER_ERROR"


class EmptyTransactionError(LedgerError):
    """Transaction has no entries."""

    code: str = "EMPTY_TRANSACTION"

    def __init__(self):
        super().__init__("transaction has no entries")


class SingleEntryTransactionError(LedgerError):
    """Transaction has exactly one entry."""

    code: str = "SINGLE_ENTRY_TRANSACTION"

    def __init__(self):
        super().__init__("transaction has only one entry")


class UnbalancedTransactionError(LedgerError):
    """Entry amounts do not sum to zero."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, total: int):
        self.total = total
        super().__init__("transaction is unbalanced")
