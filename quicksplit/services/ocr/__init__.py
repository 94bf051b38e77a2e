"""OCR services package."""

from quicksplit.services.ocr.mindee_service import (
    ExtractionFailedError,
    MindeeReceiptService,
    OCRError,
)
from quicksplit.services.ocr.parser import parse_items_from_text, parse_line

__all__ = [
    "ExtractionFailedError",
    "MindeeReceiptService",
    "OCRError",
    "parse_items_from_text",
    "parse_line",
]
