"""
Audit Logger

DESIGN DECISION: Every change to a bill is logged. Bills are immutable
snapshots that get replaced wholesale, so the audit trail is the only
record of how the current snapshot came about.

The audit logger:
- Always writes a structured local log line
- Optionally appends to an audit store
- Never lets an audit failure break the user's edit
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from quicksplit.config import AppSettings, get_settings
from quicksplit.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from quicksplit.services.storage import AuditStorageInterface, StorageError


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Level and renderer come from AppSettings (LOG_LEVEL, LOG_JSON).
    """
    settings = settings or get_settings().app
    logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level))
    logging.getLogger().setLevel(getattr(logging, settings.log_level))

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Writes every AuditEvent as a structlog line at the event's severity,
    and appends it to an audit store when one is given.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the storage write succeeded (or no storage is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_bill_changed(
        self,
        event_type: AuditEventType,
        bill_id: str,
        description: str,
        correlation_id: Optional[UUID] = None,
        **details,
    ) -> None:
        """Log a change to a bill snapshot."""
        self.log(AuditEventBuilder.bill_changed(
            event_type=event_type,
            bill_id=bill_id,
            description=description,
            correlation_id=correlation_id,
            details=details,
        ))

    def log_save_failed(
        self,
        bill_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(
            bill_id=bill_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_input_rejected(
        self,
        bill_id: Optional[str],
        field: str,
        messages: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.input_rejected(
            bill_id=bill_id,
            field=field,
            messages=messages,
            correlation_id=correlation_id,
        ))

    def log_receipt_scanned(
        self,
        bill_id: str,
        item_count: int,
        merchant_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_scanned(
            bill_id=bill_id,
            item_count=item_count,
            merchant_name=merchant_name,
            correlation_id=correlation_id,
        ))

    def log_receipt_scan_failed(
        self,
        bill_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_scan_failed(
            bill_id=bill_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """New id tying together the events of one editing session."""
    return uuid4()
