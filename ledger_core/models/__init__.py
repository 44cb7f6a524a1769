"""
Data Models Package

This package contains all Pydantic models used in Ledger Core.
All data flowing through the ledger must conform to these schemas.
"""

from ledger_core.models.account import (
    Account,
    AccountBalance,
    AccountType,
    NormalBalance,
)
from ledger_core.models.transaction import (
    EmptyTransactionError,
    Entry,
    LedgerError,
    SingleEntryTransactionError,
    Transaction,
    TransactionType,
    UnbalancedTransactionError,
)
from ledger_core.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Account models
    "Account",
    "AccountBalance",
    "AccountType",
    "NormalBalance",
    # Transaction models
    "Entry",
    "Transaction",
    "TransactionType",
    # Invariant errors
    "EmptyTransactionError",
    "LedgerError",
    "SingleEntryTransactionError",
    "UnbalancedTransactionError",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
