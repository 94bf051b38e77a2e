"""
Tests for the Mindee receipt service.

The Mindee client is replaced with a MagicMock; no network calls are made.
"""

import asyncio
import pytest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

from quicksplit.services.ocr import ExtractionFailedError, MindeeReceiptService


def line_item(description, total_amount):
    return SimpleNamespace(description=description, total_amount=total_amount)


def mindee_response(line_items, supplier=None):
    prediction = SimpleNamespace(
        line_items=line_items,
        supplier_name=SimpleNamespace(value=supplier),
    )
    return SimpleNamespace(
        document=SimpleNamespace(inference=SimpleNamespace(prediction=prediction))
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.source_from_path.return_value = "path-source"
    client.source_from_bytes.return_value = "bytes-source"
    return client


class TestScanReceipt:
    """Tests for converting Mindee predictions into scanned receipts."""

    def test_line_items_become_bill_items(self, client):
        """Test a normal receipt."""
        client.parse.return_value = mindee_response(
            [line_item("Burger", 12.99), line_item("Fries", 4.5)],
            supplier="Joe's Diner",
        )
        service = MindeeReceiptService(client=client)

        receipt = asyncio.run(service.scan_receipt("receipt.jpg"))

        client.source_from_path.assert_called_once_with("receipt.jpg")
        assert client.parse.call_args.args[1] == "path-source"
        assert receipt.raw_text == "Burger 12.99\nFries 4.50"
        assert [(i.name, i.price) for i in receipt.items] == [
            ("Burger", Decimal("12.99")),
            ("Fries", Decimal("4.50")),
        ]
        assert receipt.merchant_name == "Joe's Diner"

    def test_unusable_line_items_are_skipped(self, client):
        """Test that missing or negative amounts are dropped."""
        client.parse.return_value = mindee_response([
            line_item("Discount", -2),
            line_item("Napkins", None),
            line_item(None, 3),
            line_item("Club   Sandwich", "8.25"),
        ])
        service = MindeeReceiptService(client=client)

        receipt = asyncio.run(service.scan_receipt("receipt.jpg"))

        assert [(i.name, i.price) for i in receipt.items] == [
            ("Item", Decimal("3.00")),
            ("Club Sandwich", Decimal("8.25")),
        ]
        assert receipt.merchant_name is None

    def test_empty_receipt_is_not_an_error(self, client):
        """Test an image with nothing recognizable."""
        client.parse.return_value = mindee_response([])
        service = MindeeReceiptService(client=client)

        receipt = asyncio.run(service.scan_receipt_bytes(b"...", "receipt.png"))

        client.source_from_bytes.assert_called_once_with(b"...", "receipt.png")
        assert receipt.items == []
        assert receipt.raw_text == ""

    def test_client_failure(self, client):
        """Test that API errors surface as ExtractionFailedError."""
        client.parse.side_effect = RuntimeError("401 Unauthorized")
        service = MindeeReceiptService(client=client)

        with pytest.raises(ExtractionFailedError, match="401"):
            asyncio.run(service.scan_receipt("receipt.jpg"))

    def test_unreadable_file(self, client):
        """Test a path Mindee cannot open."""
        client.source_from_path.side_effect = FileNotFoundError("no such file")
        service = MindeeReceiptService(client=client)

        with pytest.raises(ExtractionFailedError, match="Could not read"):
            asyncio.run(service.scan_receipt("missing.jpg"))
        client.parse.assert_not_called()
