"""
Audit Models for Ledger Core

Every accepted or rejected transaction and every balance computation
produces an audit event. This provides:
1. Traceability of what reached storage and what was refused
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Validation
    TRANSACTION_REJECTED = "transaction_rejected"
    EMPTY_TRANSACTION_FLAGGED = "empty_transaction_flagged"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    SAVE_FAILED = "save_failed"

    # Queries
    BALANCE_COMPUTED = "balance_computed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'account')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(transaction_id, 2, correlation_id)
        event = AuditEventBuilder.transaction_rejected("UNBALANCED_TRANSACTION", ...)
    """

    @staticmethod
    def transaction_saved(
        transaction_id: Optional[UUID],
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved with {entry_count} entries",
            details={
                "entry_count": entry_count,
            },
        )

    @staticmethod
    def transaction_rejected(
        error_code: str,
        error_message: str,
        details: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction rejected: {error_message}",
            details=details,
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def empty_transaction_flagged(
        details: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMPTY_TRANSACTION_FLAGGED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description="Transaction without entries forwarded to storage",
            details=details,
            error_code="EMPTY_TRANSACTION",
        )

    @staticmethod
    def save_failed(
        error_message: str,
        details: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            correlation_id=correlation_id,
            description="Storage refused transaction",
            details=details,
            error_message=error_message,
        )

    @staticmethod
    def balance_computed(
        account_id: UUID,
        balance: int,
        until: datetime,
        include_closed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance computed as of {until.isoformat()}",
            details={
                "balance": balance,
                "until": until.isoformat(),
                "include_closed": include_closed,
            },
        )
