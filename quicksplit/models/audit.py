"""
Audit Models for QuickSplit

Every change to a bill is recorded as an AuditEvent. Since bills are
immutable snapshots, the event stream is the only history of how the
current snapshot came to be.

Events are appended and never rewritten.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Bill lifecycle
    BILL_CREATED = "bill_created"
    BILL_OPENED = "bill_opened"
    BILL_RENAMED = "bill_renamed"
    BILL_SAVED = "bill_saved"
    BILL_DELETED = "bill_deleted"
    BILL_CLOSED = "bill_closed"
    SAVE_FAILED = "save_failed"

    # Items
    ITEM_ADDED = "item_added"
    ITEM_UPDATED = "item_updated"
    ITEM_REMOVED = "item_removed"
    ITEMS_IMPORTED = "items_imported"

    # Taxes
    TAXES_SET = "taxes_set"
    TAX_ADDED = "tax_added"
    TAX_UPDATED = "tax_updated"
    TAX_REMOVED = "tax_removed"

    # Participants and claims
    PARTICIPANT_ADDED = "participant_added"
    PARTICIPANT_REMOVED = "participant_removed"
    SELECTION_CHANGED = "selection_changed"

    # Receipt scanning
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"

    # Input boundary
    INPUT_REJECTED = "input_rejected"


class AuditSeverity(str, Enum):
    """Maps onto the log level the event is written at."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which bill is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'receipt')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events (e.g., one editing session)
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = Field(
        default=True,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Flatten to JSON-friendly key/values for structlog."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Constructors for the events the session emits.

    Usage:
        event = AuditEventBuilder.bill_changed(AuditEventType.ITEM_ADDED, bill_id, ...)
        event = AuditEventBuilder.receipt_scan_failed(bill_id, error, correlation_id)
    """

    @staticmethod
    def bill_changed(
        event_type: AuditEventType,
        bill_id: str,
        description: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def save_failed(
        bill_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Failed to save bill",
            error_message=error_message,
            is_user_action=False,
        )

    @staticmethod
    def input_rejected(
        bill_id: Optional[str],
        field: str,
        messages: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Input rejected: {field}",
            details={"issues": messages},
        )

    @staticmethod
    def receipt_scanned(
        bill_id: str,
        item_count: int,
        merchant_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            entity_type="receipt",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Receipt scanned: {item_count} item(s) found",
            details={
                "item_count": item_count,
                "merchant_name": merchant_name,
            },
        )

    @staticmethod
    def receipt_scan_failed(
        bill_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="receipt",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Receipt scan failed",
            error_message=error_message,
        )
