"""Services package."""

from quicksplit.services.ocr import (
    ExtractionFailedError,
    MindeeReceiptService,
    OCRError,
    parse_items_from_text,
)
from quicksplit.services.storage import (
    AuditStorageInterface,
    BillStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueBillStorage,
    KeyValueStore,
    NotFoundError,
    StorageError,
    create_bill_storage,
)

__all__ = [
    # OCR services
    "ExtractionFailedError",
    "MindeeReceiptService",
    "OCRError",
    "parse_items_from_text",
    # Storage services
    "AuditStorageInterface",
    "BillStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueBillStorage",
    "KeyValueStore",
    "NotFoundError",
    "StorageError",
    "create_bill_storage",
]
