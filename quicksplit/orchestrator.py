"""
Main Orchestrator for QuickSplit

Ties the engine, validation, storage, OCR and audit logging together.

DESIGN DECISION: BillSession is the single writer. It holds the current
Bill snapshot and replaces it wholesale on every edit:

    input -> validate -> Bill.<mutation>() -> new snapshot -> save -> audit

The engine itself has no state and no locks; serializing edits is the
session's job. Derived values (totals, status) are recomputed on demand
from whatever snapshot is current.
"""

from pathlib import Path
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from quicksplit.audit import AuditLogger, create_correlation_id
from quicksplit.engine import calculate_split
from quicksplit.models.audit import AuditEventType
from quicksplit.models.bill import (
    MAX_BILL_NAME_LENGTH,
    Bill,
    BillItem,
    Number,
    Participant,
    ScannedReceipt,
    TaxEntry,
    ValidationResult,
    generate_bill_name,
    new_id,
    to_decimal,
)
from quicksplit.models.split import SplitSummary
from quicksplit.reports import format_summary
from quicksplit.services.ocr import MindeeReceiptService, OCRError, parse_items_from_text
from quicksplit.services.storage import (
    BillStorageInterface,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
    create_bill_storage,
)
from quicksplit.validation import BillInputValidator, InvalidInputError, drop_empty_taxes


logger = structlog.get_logger(__name__)


class NoActiveBillError(RuntimeError):
    """A bill operation was requested before any bill was opened."""
    pass


class BillSession:
    """
    Holds and edits the bill the user is working on.

    Every mutation:
    1. Validates the input (InvalidInputError on errors)
    2. Derives a new Bill snapshot from the current one
    3. Makes it current
    4. Saves it (when autosave is on) and records it as the current bill
    5. Logs an audit event
    """

    def __init__(
        self,
        storage: BillStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[BillInputValidator] = None,
        autosave: bool = True,
        correlation_id: Optional[UUID] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or BillInputValidator()
        self._autosave = autosave
        self._correlation_id = correlation_id or create_correlation_id()
        self._bill: Optional[Bill] = None

    # -------------------------------------------------------------------------
    # Current snapshot
    # -------------------------------------------------------------------------

    @property
    def bill(self) -> Bill:
        if self._bill is None:
            raise NoActiveBillError("No bill is open")
        return self._bill

    @property
    def has_bill(self) -> bool:
        return self._bill is not None

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    @property
    def summary(self) -> SplitSummary:
        """Totals and status for the current snapshot."""
        return calculate_split(self.bill)

    def export_summary(self) -> str:
        return format_summary(self.bill)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check(self, field: str, result: ValidationResult) -> None:
        """Raise InvalidInputError (and audit it) if result holds errors."""
        for warning in result.warnings:
            logger.warning("input_warning", field=field, message=warning)
        if result.has_errors:
            self._audit_logger.log_input_rejected(
                bill_id=self._bill.id if self._bill else None,
                field=field,
                messages=[i.message for i in result.issues],
                correlation_id=self._correlation_id,
            )
            raise InvalidInputError(field, result)

    def _save(self, bill: Bill) -> None:
        try:
            self._storage.save_bill(bill)
            self._storage.set_current_bill_id(bill.id)
        except StorageError as e:
            self._audit_logger.log_save_failed(
                bill_id=bill.id,
                error_message=str(e),
                correlation_id=self._correlation_id,
            )
            raise

    def _commit(
        self,
        bill: Bill,
        event_type: AuditEventType,
        description: str,
        **details,
    ) -> Bill:
        """
        Make bill the current snapshot, persist it and audit the change.

        The snapshot is replaced before saving, so a StorageError leaves the
        edit in memory; it is raised so the caller can tell the user.
        """
        self._bill = bill
        if self._autosave:
            self._save(bill)
        self._audit_logger.log_bill_changed(
            event_type=event_type,
            bill_id=bill.id,
            description=description,
            correlation_id=self._correlation_id,
            **details,
        )
        return bill

    # -------------------------------------------------------------------------
    # Bill lifecycle
    # -------------------------------------------------------------------------

    def new_bill(self, name: Optional[str] = None) -> Bill:
        if name:
            self._check("name", self._validator.validate_bill_name(name))
        bill = Bill.create(name.strip() if name else None)
        return self._commit(bill, AuditEventType.BILL_CREATED, f"Bill created: {bill.name}")

    def open_bill(self, bill_id: str) -> Bill:
        """
        Make a stored bill current.

        Raises:
            NotFoundError: If no bill has this id
        """
        bill = self._storage.get_bill_by_id(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill not found: {bill_id}")
        self._bill = bill
        self._storage.set_current_bill_id(bill.id)
        self._audit_logger.log_bill_changed(
            event_type=AuditEventType.BILL_OPENED,
            bill_id=bill.id,
            description=f"Bill opened: {bill.name}",
            correlation_id=self._correlation_id,
        )
        return bill

    def resume(self) -> Optional[Bill]:
        """Reopen the bill that was current last time, if it still exists."""
        bill_id = self._storage.get_current_bill_id()
        if not bill_id:
            return None
        try:
            return self.open_bill(bill_id)
        except NotFoundError:
            logger.info("current_bill_missing", bill_id=bill_id)
            self._storage.set_current_bill_id(None)
            return None

    def save(self) -> Bill:
        """Persist the current snapshot explicitly (for autosave=False sessions)."""
        bill = self.bill
        self._save(bill)
        self._audit_logger.log_bill_changed(
            event_type=AuditEventType.BILL_SAVED,
            bill_id=bill.id,
            description=f"Bill saved: {bill.name}",
            correlation_id=self._correlation_id,
        )
        return bill

    def close(self) -> None:
        if self._bill is None:
            return
        bill_id = self._bill.id
        self._bill = None
        self._storage.set_current_bill_id(None)
        self._audit_logger.log_bill_changed(
            event_type=AuditEventType.BILL_CLOSED,
            bill_id=bill_id,
            description="Bill closed",
            correlation_id=self._correlation_id,
        )

    def delete_bill(self, bill_id: str) -> bool:
        deleted = self._storage.delete_bill(bill_id)
        if deleted:
            if self._bill is not None and self._bill.id == bill_id:
                self._bill = None
            self._audit_logger.log_bill_changed(
                event_type=AuditEventType.BILL_DELETED,
                bill_id=bill_id,
                description="Bill deleted",
                correlation_id=self._correlation_id,
            )
        return deleted

    def list_bills(self) -> list[Bill]:
        return self._storage.list_bills()

    def rename(self, name: str) -> Bill:
        if not (name or "").strip():
            return self.bill
        self._check("name", self._validator.validate_bill_name(name))
        return self._commit(
            self.bill.rename(name),
            AuditEventType.BILL_RENAMED,
            f"Bill renamed to {name.strip()}",
        )

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def add_item(self, name: str, price: Number) -> Bill:
        self._check("item", self._validator.validate_item(name, price))
        item = BillItem(name=name, price=to_decimal(price))
        return self._commit(
            self.bill.add_item(item),
            AuditEventType.ITEM_ADDED,
            f"Item added: {item.name}",
            price=str(item.price),
        )

    def update_item(self, index: int, name: str, price: Number) -> Bill:
        self._check("item", self._validator.validate_item(name, price))
        if not self.bill.has_item(index):
            return self.bill
        item = BillItem(name=name, price=to_decimal(price))
        return self._commit(
            self.bill.update_item(index, item),
            AuditEventType.ITEM_UPDATED,
            f"Item {index} updated: {item.name}",
            item_index=index,
            price=str(item.price),
        )

    def remove_item(self, index: int) -> Bill:
        if not self.bill.has_item(index):
            return self.bill
        return self._commit(
            self.bill.remove_item(index),
            AuditEventType.ITEM_REMOVED,
            f"Item {index} removed",
            item_index=index,
        )

    def import_items(self, items: Iterable[BillItem]) -> list[BillItem]:
        """
        Append items in one snapshot, skipping any that fail validation.

        Returns the items that were added.
        """
        accepted = []
        for item in items:
            result = self._validator.validate_item(item.name, item.price)
            if result.has_errors:
                logger.warning(
                    "imported_item_skipped",
                    name=item.name,
                    issues=[i.message for i in result.issues],
                )
                continue
            accepted.append(item)

        if accepted:
            self._commit(
                self.bill.add_items(accepted),
                AuditEventType.ITEMS_IMPORTED,
                f"{len(accepted)} item(s) imported",
                item_count=len(accepted),
            )
        return accepted

    def import_text(self, text: str) -> list[BillItem]:
        """Parse pasted receipt text and add the items found."""
        return self.import_items(parse_items_from_text(text))

    # -------------------------------------------------------------------------
    # Taxes
    # -------------------------------------------------------------------------

    def add_tax(self, label: str, percent: Number) -> Bill:
        """Add a tax/service/fee entry. A 0% entry is ignored."""
        self._check("tax", self._validator.validate_tax(label, percent))
        if to_decimal(percent) == 0:
            return self.bill
        label = (label or "").strip() or "Other"
        return self._commit(
            self.bill.add_tax(label, percent),
            AuditEventType.TAX_ADDED,
            f"Tax added: {label} {percent}%",
        )

    def update_tax(
        self,
        tax_id: str,
        label: Optional[str] = None,
        percent: Optional[Number] = None,
    ) -> Bill:
        """Change a tax entry. Setting it to 0% removes it."""
        if label is not None:
            self._check("tax", self._validator.validate_tax_label(label))
            label = label.strip() or "Other"
        if percent is not None:
            self._check("tax", self._validator.validate_tax(label or "", percent))
            if to_decimal(percent) == 0:
                return self.remove_tax(tax_id)
        return self._commit(
            self.bill.update_tax(tax_id, label=label, percent=percent),
            AuditEventType.TAX_UPDATED,
            f"Tax {tax_id} updated",
        )

    def remove_tax(self, tax_id: str) -> Bill:
        return self._commit(
            self.bill.remove_tax(tax_id),
            AuditEventType.TAX_REMOVED,
            f"Tax {tax_id} removed",
        )

    def set_taxes(self, taxes: Iterable[TaxEntry]) -> Bill:
        """Replace all tax entries at once, dropping 0% entries."""
        taxes = list(taxes)
        for tax in taxes:
            self._check("tax", self._validator.validate_tax(tax.label, tax.percent))
        kept = drop_empty_taxes(taxes)
        return self._commit(
            self.bill.set_taxes(kept),
            AuditEventType.TAXES_SET,
            f"{len(kept)} tax entr{'y' if len(kept) == 1 else 'ies'} set",
        )

    # -------------------------------------------------------------------------
    # Participants and claims
    # -------------------------------------------------------------------------

    def add_participant(self, name: str) -> Participant:
        """Add a participant and return it (with its new id)."""
        self._check(
            "participant",
            self._validator.validate_participant(name, self.bill.participants),
        )
        participant_id = new_id()
        bill = self._commit(
            self.bill.add_participant(name.strip(), participant_id=participant_id),
            AuditEventType.PARTICIPANT_ADDED,
            f"Participant added: {name.strip()}",
            participant_id=participant_id,
        )
        return bill.get_participant(participant_id)

    def remove_participant(self, participant_id: str) -> Bill:
        return self._commit(
            self.bill.remove_participant(participant_id),
            AuditEventType.PARTICIPANT_REMOVED,
            f"Participant removed: {participant_id}",
            participant_id=participant_id,
        )

    def set_selection(
        self,
        participant_id: str,
        item_index: int,
        selected: bool,
        percentage: Optional[Number] = None,
    ) -> Bill:
        """Claim (selected=True) or release an item for a participant."""
        self._check("percentage", self._validator.validate_percentage(percentage))
        return self._commit(
            self.bill.set_participant_item_selection(
                participant_id, item_index, selected, percentage
            ),
            AuditEventType.SELECTION_CHANGED,
            f"Item {item_index} {'claimed' if selected else 'released'}",
            participant_id=participant_id,
            item_index=item_index,
            percentage=None if percentage is None else str(percentage),
        )

    def set_percentage(
        self,
        participant_id: str,
        item_index: int,
        percentage: Optional[Number],
    ) -> Bill:
        """Set an existing claim's percentage; None switches it to a remainder share."""
        self._check("percentage", self._validator.validate_percentage(percentage))
        return self._commit(
            self.bill.set_participant_item_percentage(participant_id, item_index, percentage),
            AuditEventType.SELECTION_CHANGED,
            f"Item {item_index} percentage changed",
            participant_id=participant_id,
            item_index=item_index,
            percentage=None if percentage is None else str(percentage),
        )


class ReceiptImportFlow:
    """
    Scans a receipt and adds what it finds to the session's bill.

    Flow:
    1. Image -> Mindee -> raw text lines
    2. Text -> parser -> items
    3. Items -> validated -> appended to the current bill in one snapshot
    4. A bill still carrying its generated name is renamed after the merchant
    """

    def __init__(
        self,
        session: BillSession,
        ocr_service: Optional[MindeeReceiptService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._ocr_service = ocr_service or MindeeReceiptService()
        self._audit_logger = audit_logger or AuditLogger()

    async def scan_and_import(self, image_path: Union[str, Path]) -> ScannedReceipt:
        return await self._import(lambda: self._ocr_service.scan_receipt(image_path))

    async def scan_bytes_and_import(self, data: bytes, filename: str) -> ScannedReceipt:
        return await self._import(lambda: self._ocr_service.scan_receipt_bytes(data, filename))

    async def _import(self, scan) -> ScannedReceipt:
        """Run scan() and add its items to the current bill (creating one if needed)."""
        session = self._session
        if not session.has_bill:
            session.new_bill()
        bill = session.bill

        try:
            receipt = await scan()
        except OCRError as e:
            self._audit_logger.log_receipt_scan_failed(
                bill_id=bill.id,
                error_message=str(e),
                correlation_id=session.correlation_id,
            )
            raise

        self._audit_logger.log_receipt_scanned(
            bill_id=bill.id,
            item_count=len(receipt.items),
            merchant_name=receipt.merchant_name,
            correlation_id=session.correlation_id,
        )

        session.import_items(receipt.items)
        if receipt.merchant_name and bill.name == generate_bill_name(bill.created_at):
            session.rename(receipt.merchant_name.strip()[:MAX_BILL_NAME_LENGTH])
        return receipt


def create_session(autosave: bool = True) -> BillSession:
    """
    Factory function to create a session wired from configuration.

    Storage comes from QUICKSPLIT_STORAGE_*; the audit trail is kept in memory.
    """
    return BillSession(
        storage=create_bill_storage(),
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        validator=BillInputValidator(),
        autosave=autosave,
    )
