"""
Data Models Package

Pydantic models for bills (raw state), split results (derived values)
and audit events.
"""

from quicksplit.models.bill import (
    Bill,
    BillItem,
    BillStatus,
    ItemSelection,
    Participant,
    ScannedReceipt,
    TaxEntry,
    ValidationIssue,
    ValidationResult,
    clamp_percentage,
    generate_bill_name,
)
from quicksplit.models.split import (
    ItemSplitInfo,
    ParticipantTotal,
    SplitSummary,
)
from quicksplit.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "Bill",
    "BillItem",
    "BillStatus",
    "ItemSelection",
    "Participant",
    "ScannedReceipt",
    "TaxEntry",
    "ValidationIssue",
    "ValidationResult",
    "clamp_percentage",
    "generate_bill_name",
    # Split results
    "ItemSplitInfo",
    "ParticipantTotal",
    "SplitSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
