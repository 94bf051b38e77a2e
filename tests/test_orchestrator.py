"""
Integration tests for BillSession and ReceiptImportFlow.

Storage is in-memory and OCR is mocked; nothing leaves the process.
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from quicksplit.audit import AuditLogger
from quicksplit.config import AppSettings
from quicksplit.models.audit import AuditEventType
from quicksplit.models.bill import BillItem, BillStatus, ScannedReceipt, TaxEntry
from quicksplit.orchestrator import BillSession, NoActiveBillError, ReceiptImportFlow
from quicksplit.services.ocr import ExtractionFailedError
from quicksplit.services.storage import (
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    KeyValueBillStorage,
    NotFoundError,
    StorageError,
)
from quicksplit.validation import BillInputValidator, InvalidInputError


@pytest.fixture
def storage():
    return KeyValueBillStorage(InMemoryKeyValueStore())


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def session(storage, audit_storage):
    return BillSession(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        validator=BillInputValidator(AppSettings()),
    )


def event_types(audit_storage, bill_id):
    return [e.event_type for e in audit_storage.get_events_by_entity(bill_id)]


class TestBillLifecycle:
    """Tests for creating, opening and deleting bills."""

    def test_no_bill_open(self, session):
        """Test that edits need an open bill."""
        assert session.has_bill is False
        with pytest.raises(NoActiveBillError):
            session.add_item("Pizza", 10)

    def test_new_bill_is_saved_and_current(self, session, storage):
        """Test that a new bill is persisted immediately."""
        bill = session.new_bill("Dinner")
        assert storage.get_bill_by_id(bill.id) == bill
        assert storage.get_current_bill_id() == bill.id

    def test_open_bill(self, session, storage):
        """Test reopening a stored bill."""
        bill = session.new_bill("Dinner")
        session.close()
        assert session.has_bill is False

        assert session.open_bill(bill.id) == bill
        assert session.bill.id == bill.id

    def test_open_missing_bill(self, session):
        """Test opening an unknown id."""
        with pytest.raises(NotFoundError):
            session.open_bill("missing")

    def test_resume(self, storage, audit_storage):
        """Test that a new session picks up where the last one stopped."""
        first = BillSession(storage=storage, validator=BillInputValidator(AppSettings()))
        bill = first.new_bill("Dinner")
        first.add_item("Pizza", 10)

        second = BillSession(storage=storage, validator=BillInputValidator(AppSettings()))
        resumed = second.resume()
        assert resumed.id == bill.id
        assert len(resumed.items) == 1

    def test_resume_without_current_bill(self, session):
        """Test resume on an empty store."""
        assert session.resume() is None

    def test_resume_forgets_deleted_bill(self, session, storage):
        """Test that a dangling current id is cleared."""
        storage.set_current_bill_id("gone")
        assert session.resume() is None
        assert storage.get_current_bill_id() is None

    def test_delete_current_bill(self, session, storage):
        """Test deleting the open bill."""
        bill = session.new_bill("Dinner")
        assert session.delete_bill(bill.id) is True
        assert session.has_bill is False
        assert storage.list_bills() == []

    def test_rename(self, session):
        """Test renaming, and ignoring blank names."""
        session.new_bill("Dinner")
        assert session.rename("Lunch").name == "Lunch"
        assert session.rename("   ").name == "Lunch"

    def test_manual_save(self, storage):
        """Test a session without autosave."""
        session = BillSession(
            storage=storage,
            validator=BillInputValidator(AppSettings()),
            autosave=False,
        )
        bill = session.new_bill("Dinner")
        assert storage.get_bill_by_id(bill.id) is None
        session.save()
        assert storage.get_bill_by_id(bill.id) == bill


class TestEditing:
    """Tests for the validated mutation wrappers."""

    def test_snapshots_are_replaced(self, session):
        """Test that edits produce new snapshots."""
        before = session.new_bill("Dinner")
        after = session.add_item("Pizza", "12.50")
        assert before.items == ()
        assert session.bill is after
        assert after.items[0].price == Decimal("12.50")

    def test_invalid_item_is_refused(self, session, audit_storage):
        """Test that a negative price never reaches the bill."""
        bill = session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.add_item("Pizza", -5)
        assert session.bill.items == ()
        assert AuditEventType.INPUT_REJECTED in event_types(audit_storage, bill.id)

    def test_long_item_name_is_refused(self, session, audit_storage):
        """Test that over-long names are refused as invalid input."""
        bill = session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.add_item("a" * 201, "1.00")
        assert session.bill.items == ()
        assert AuditEventType.INPUT_REJECTED in event_types(audit_storage, bill.id)

    def test_long_participant_name_is_refused(self, session):
        """Test the participant name limit at the session boundary."""
        session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.add_participant("a" * 101)

    def test_long_bill_name_is_refused(self, session, storage):
        """Test that a refused rename leaves the stored bill loadable."""
        bill = session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.rename("x" * 201)
        with pytest.raises(InvalidInputError):
            session.new_bill("x" * 201)

        assert session.bill.name == "Dinner"
        assert storage.get_bill_by_id(bill.id).name == "Dinner"

    def test_long_tax_label_is_refused(self, session, storage):
        """Test that a refused tax edit leaves the stored bill loadable."""
        bill = session.new_bill("Dinner")
        session.add_tax("Service", 10)
        tax_id = session.bill.taxes[0].id

        with pytest.raises(InvalidInputError):
            session.update_tax(tax_id, label="Service charge " * 5)
        with pytest.raises(InvalidInputError):
            session.add_tax("Service charge " * 5, 10)

        stored = storage.get_bill_by_id(bill.id)
        assert stored is not None
        assert [t.label for t in stored.taxes] == ["Service"]

    def test_out_of_range_item_edits_are_not_committed(self, session, audit_storage):
        """Test that edits to missing items neither save nor audit."""
        bill = session.new_bill("Dinner")
        session.add_item("Pizza", 10)
        before = session.bill
        events = len(audit_storage.get_events_by_entity(bill.id))

        assert session.update_item(3, "Ghost", 5) is before
        assert session.remove_item(-1) is before
        assert len(audit_storage.get_events_by_entity(bill.id)) == events

    def test_update_and_remove_item(self, session):
        """Test item edits."""
        session.new_bill("Dinner")
        session.add_item("Pizza", 10)
        session.add_item("Wine", 20)
        session.update_item(0, "Big Pizza", 15)
        session.remove_item(1)
        assert [(i.name, i.price) for i in session.bill.items] == [("Big Pizza", Decimal("15"))]

    def test_zero_tax_is_ignored(self, session):
        """Test that a 0% tax is filtered at the boundary."""
        session.new_bill("Dinner")
        session.add_tax("Service", 0)
        assert session.bill.taxes == ()

    def test_tax_lifecycle(self, session):
        """Test adding, updating and zeroing a tax."""
        session.new_bill("Dinner")
        session.add_tax("  ", 10)
        tax = session.bill.taxes[0]
        assert tax.label == "Other"

        session.update_tax(tax.id, label="Service", percent=12)
        assert session.bill.taxes[0].percent == Decimal("12")
        assert session.bill.taxes[0].label == "Service"

        session.update_tax(tax.id, percent=0)
        assert session.bill.taxes == ()

    def test_negative_tax_is_refused(self, session):
        """Test that negative taxes raise."""
        session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.add_tax("Discount", -10)

    def test_set_taxes_drops_empty(self, session):
        """Test bulk tax replacement."""
        session.new_bill("Dinner")
        session.set_taxes([
            TaxEntry(id="service", label="Service", percent=Decimal("0")),
            TaxEntry(id="tax", label="Tax", percent=Decimal("8")),
        ])
        assert [t.id for t in session.bill.taxes] == ["tax"]

    def test_add_participant_returns_it(self, session):
        """Test that the new participant (and its id) comes back."""
        session.new_bill("Dinner")
        alice = session.add_participant("  Alice ")
        assert alice.name == "Alice"
        assert session.bill.get_participant(alice.id) == alice

    def test_blank_participant_is_refused(self, session):
        """Test that participants need a name."""
        session.new_bill("Dinner")
        with pytest.raises(InvalidInputError):
            session.add_participant("")

    def test_out_of_range_percentage_is_clamped(self, session):
        """Test that 150% is stored as 100%."""
        session.new_bill("Dinner")
        session.add_item("Pizza", 10)
        alice = session.add_participant("Alice")
        session.set_selection(alice.id, 0, True, 150)
        assert session.bill.get_participant(alice.id).selection_for(0).percentage == 100

    def test_nan_percentage_is_refused(self, session):
        """Test that NaN never reaches the bill."""
        session.new_bill("Dinner")
        session.add_item("Pizza", 10)
        alice = session.add_participant("Alice")
        with pytest.raises(InvalidInputError):
            session.set_selection(alice.id, 0, True, float("nan"))

    def test_full_split_flow(self, session, audit_storage):
        """Test a bill from empty to completed."""
        bill = session.new_bill("Dinner")
        assert session.summary.status == BillStatus.DRAFT

        session.add_item("Pizza", 20)
        session.add_item("Wine", 30)
        session.add_tax("Tax", 10)
        alice = session.add_participant("Alice")
        bob = session.add_participant("Bob")
        assert session.summary.status == BillStatus.SPLITTING

        session.set_selection(alice.id, 0, True)
        session.set_selection(bob.id, 0, True)
        session.set_selection(alice.id, 1, True, 40)
        assert session.summary.status == BillStatus.SPLITTING

        session.set_selection(bob.id, 1, True)
        summary = session.summary
        assert summary.status == BillStatus.COMPLETED
        assert summary.grand_total == Decimal("55")
        assert [t.total for t in summary.participant_totals] == [Decimal("24.2"), Decimal("30.8")]
        assert "Alice: $24.20" in session.export_summary()

        session.set_percentage(alice.id, 1, 70)
        session.set_percentage(bob.id, 1, 50)
        assert session.summary.over_assigned_items == [1]

        types = event_types(audit_storage, bill.id)
        assert types[0] == AuditEventType.BILL_CREATED
        assert AuditEventType.PARTICIPANT_ADDED in types
        assert AuditEventType.SELECTION_CHANGED in types

    def test_import_text(self, session):
        """Test pasting receipt text."""
        session.new_bill("Dinner")
        added = session.import_text("Burger 12.99\nTHANK YOU\nFries $4.50")
        assert [i.name for i in added] == ["Burger", "Fries"]
        assert len(session.bill.items) == 2

    def test_import_skips_invalid_items(self, session):
        """Test that bad imported items are dropped, good ones kept."""
        session.new_bill("Dinner")
        added = session.import_items([
            BillItem(name="Soup", price=Decimal("5")),
            BillItem(name="Refund", price=Decimal("-3")),
        ])
        assert [i.name for i in added] == ["Soup"]

    def test_save_failure_keeps_edit_and_raises(self, audit_storage):
        """Test that a storage failure is audited and raised."""
        storage = MagicMock()
        storage.save_bill.side_effect = StorageError("disk full")
        session = BillSession(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            validator=BillInputValidator(AppSettings()),
        )
        with pytest.raises(StorageError):
            session.new_bill("Dinner")
        assert session.has_bill is True
        assert audit_storage.get_recent_events()[0].event_type == AuditEventType.SAVE_FAILED


class TestReceiptImportFlow:
    """Tests for scanning receipts into the bill."""

    def make_ocr(self, receipt=None, error=None):
        ocr = MagicMock()
        ocr.scan_receipt = AsyncMock(return_value=receipt, side_effect=error)
        ocr.scan_receipt_bytes = AsyncMock(return_value=receipt, side_effect=error)
        return ocr

    def test_scan_adds_items_and_names_bill(self, session, audit_storage):
        """Test a successful scan into a fresh bill."""
        receipt = ScannedReceipt(
            raw_text="Burger 12.99\nFries 4.50",
            items=[
                BillItem(name="Burger", price=Decimal("12.99")),
                BillItem(name="Fries", price=Decimal("4.50")),
            ],
            merchant_name="Joe's Diner",
        )
        flow = ReceiptImportFlow(session, ocr_service=self.make_ocr(receipt),
                                 audit_logger=AuditLogger(audit_storage))

        result = asyncio.run(flow.scan_and_import("receipt.jpg"))

        assert result is receipt
        assert [i.name for i in session.bill.items] == ["Burger", "Fries"]
        assert session.bill.name == "Joe's Diner"
        assert AuditEventType.RECEIPT_SCANNED in event_types(audit_storage, session.bill.id)

    def test_scan_keeps_custom_name(self, session):
        """Test that a bill the user named is not renamed."""
        session.new_bill("Team Lunch")
        receipt = ScannedReceipt(items=[], merchant_name="Joe's Diner")
        flow = ReceiptImportFlow(session, ocr_service=self.make_ocr(receipt))

        asyncio.run(flow.scan_bytes_and_import(b"...", "receipt.png"))

        assert session.bill.name == "Team Lunch"
        assert session.bill.items == ()

    def test_long_merchant_name_is_shortened(self, session, storage):
        """Test that any merchant name yields a bill that loads back."""
        receipt = ScannedReceipt(items=[], merchant_name="Trattoria " * 30)
        flow = ReceiptImportFlow(session, ocr_service=self.make_ocr(receipt))

        asyncio.run(flow.scan_and_import("receipt.jpg"))

        stored = storage.get_bill_by_id(session.bill.id)
        assert stored is not None
        assert len(stored.name) <= 200
        assert stored.name.startswith("Trattoria Trattoria")

    def test_scan_failure(self, session, audit_storage):
        """Test that OCR errors are audited and re-raised."""
        session.new_bill("Dinner")
        flow = ReceiptImportFlow(
            session,
            ocr_service=self.make_ocr(error=ExtractionFailedError("timeout")),
            audit_logger=AuditLogger(audit_storage),
        )
        with pytest.raises(ExtractionFailedError):
            asyncio.run(flow.scan_and_import("receipt.jpg"))
        assert AuditEventType.RECEIPT_SCAN_FAILED in event_types(audit_storage, session.bill.id)
