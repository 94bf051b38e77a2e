"""
Storage Services Package

Abstract interfaces plus key-value implementations (in-memory and
JSON file) for bills and the audit trail.
"""

from quicksplit.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    DuplicateError,
    KeyValueStore,
    NotFoundError,
    StorageError,
)
from quicksplit.services.storage.key_value import (
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueBillStorage,
    create_bill_storage,
    deserialize_bills,
    serialize_bills,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BillStorageInterface",
    "KeyValueStore",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Key-value implementation
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueBillStorage",
    "create_bill_storage",
    "deserialize_bills",
    "serialize_bills",
]
