"""
Receipt OCR Service using Mindee

DESIGN DECISION: OCR is only a way to get raw text off a receipt. The
predicted line items are flattened back into "<name> <price>" text lines
and go through the same parser as manually pasted text, so there is one
place that decides what counts as an item.

This service handles:
1. Sending a receipt image (file or bytes) to Mindee
2. Retrying transient transport failures
3. Converting the response into a ScannedReceipt

CRITICAL: Scanned items are a suggestion. They land in the bill as plain
items the user can fix or delete.
"""

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

import structlog
from mindee import Client, PredictResponse
from mindee.product import ReceiptV5
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from quicksplit.config import get_settings
from quicksplit.models.bill import ScannedReceipt
from quicksplit.services.ocr.parser import parse_items_from_text


logger = structlog.get_logger(__name__)


class OCRError(Exception):
    """Base exception for OCR errors."""
    pass


class ExtractionFailedError(OCRError):
    """Failed to extract text from the receipt."""
    pass


class MindeeReceiptService:
    """
    OCR service using the Mindee receipt API.

    IMPORTANT BOUNDARIES:
    1. This service ONLY extracts text and items - it never touches a bill
    2. An image with no recognizable item lines is not an error
    """

    def __init__(self, client: Optional[Client] = None):
        """
        Args:
            client: Preconfigured Mindee client. Created lazily from
                    MINDEE_API_KEY when omitted.
        """
        self._client = client

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=get_settings().mindee.api_key)
        return self._client

    @staticmethod
    def _safe_decimal(value) -> Optional[Decimal]:
        """Safely convert a value to a 2-place Decimal."""
        if value is None:
            return None
        try:
            # Mindee returns float/None
            return Decimal(str(value)).quantize(Decimal("0.01"))
        except (InvalidOperation, TypeError, ValueError):
            return None

    def _line_items_to_text(self, line_items) -> str:
        """Render predicted line items as '<description> <amount>' lines."""
        lines = []
        for item in line_items or []:
            amount = self._safe_decimal(getattr(item, "total_amount", None))
            if amount is None or amount < 0:
                continue
            description = " ".join(str(getattr(item, "description", None) or "Item").split())
            lines.append(f"{description} {amount}")
        return "\n".join(lines)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    def _predict(self, input_source) -> PredictResponse:
        return self._get_client().parse(ReceiptV5, input_source)

    async def scan_receipt(self, image_path: Union[str, Path]) -> ScannedReceipt:
        """
        Scan a receipt image from disk.

        Raises:
            ExtractionFailedError: If the file cannot be read or Mindee fails
        """
        try:
            source = self._get_client().source_from_path(str(image_path))
        except (OSError, ValueError) as e:
            raise ExtractionFailedError(f"Could not read receipt image {image_path}: {e}") from e
        return await self._scan(source)

    async def scan_receipt_bytes(self, data: bytes, filename: str) -> ScannedReceipt:
        """Scan a receipt image held in memory (e.g. an upload)."""
        source = self._get_client().source_from_bytes(data, filename)
        return await self._scan(source)

    async def _scan(self, source) -> ScannedReceipt:
        try:
            response = self._predict(source)
            prediction = response.document.inference.prediction
        except Exception as e:
            logger.error("receipt_ocr_failed", error=str(e))
            raise ExtractionFailedError(f"Failed to extract receipt text: {e}") from e

        raw_text = self._line_items_to_text(getattr(prediction, "line_items", None))
        supplier = getattr(prediction, "supplier_name", None)
        merchant_name = getattr(supplier, "value", None) or None

        items = parse_items_from_text(raw_text)
        logger.info(
            "receipt_scanned",
            item_count=len(items),
            merchant_name=merchant_name,
        )
        return ScannedReceipt(
            raw_text=raw_text,
            items=items,
            merchant_name=merchant_name,
        )
