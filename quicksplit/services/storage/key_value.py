"""
Key-Value Storage Implementation

Bills are kept as one JSON array under a single key, the way a browser
app keeps them in localStorage. The key-value backend is pluggable:
in-memory for tests, a JSON file on disk for real use.

TRADEOFFS:
- Every save rewrites the whole array (fine for a personal bill list)
- No concurrent writers; the session is the single writer
"""

import json
import os
import tempfile
from collections import deque
from pathlib import Path
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from quicksplit.config import StorageSettings, get_settings
from quicksplit.models.audit import AuditEvent
from quicksplit.models.bill import Bill
from quicksplit.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    DuplicateError,
    KeyValueStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# SERIALIZATION
# =============================================================================

def serialize_bills(bills: Iterable[Bill]) -> str:
    """Serialize raw bill fields to a JSON array."""
    return json.dumps([bill.to_data() for bill in bills])


def deserialize_bills(data: Optional[str]) -> list[Bill]:
    """
    Parse a JSON array of bills.

    Missing data, invalid JSON or a non-array all yield an empty list.
    Individual malformed records are skipped and logged.
    """
    if not data:
        return []

    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        logger.warning("bills_json_invalid", error=str(e))
        return []

    if not isinstance(parsed, list):
        logger.warning("bills_json_not_a_list", found=type(parsed).__name__)
        return []

    bills = []
    for position, record in enumerate(parsed):
        try:
            bills.append(Bill.from_data(record))
        except ValidationError as e:
            logger.warning(
                "bill_record_skipped",
                position=position,
                bill_id=record.get("id") if isinstance(record, dict) else None,
                errors=e.error_count(),
            )
    return bills


# =============================================================================
# KEY-VALUE BACKENDS
# =============================================================================

class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Contents are lost when the process exits."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store every key in one JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            content = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not read {self._path}: {e}") from e

        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageError(f"Storage file {self._path} is corrupt: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                    json.dump(data, tmp)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Could not write {self._path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


# =============================================================================
# BILL STORAGE
# =============================================================================

class KeyValueBillStorage(BillStorageInterface):
    """Bill storage on top of any KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        bills_key: str = "quicksplit_bills",
        current_bill_key: str = "quicksplit_current_bill_id",
    ):
        self._store = store
        self._bills_key = bills_key
        self._current_bill_key = current_bill_key

    def _load_all(self) -> list[Bill]:
        return deserialize_bills(self._store.get_item(self._bills_key))

    def _store_all(self, bills: list[Bill]) -> None:
        self._store.set_item(self._bills_key, serialize_bills(bills))

    def save_bill(self, bill: Bill) -> None:
        bills = self._load_all()
        for position, existing in enumerate(bills):
            if existing.id == bill.id:
                bills[position] = bill
                break
        else:
            bills.append(bill)
        self._store_all(bills)
        logger.debug("bill_saved", bill_id=bill.id, bill_count=len(bills))

    def get_bill_by_id(self, bill_id: str) -> Optional[Bill]:
        for bill in self._load_all():
            if bill.id == bill_id:
                return bill
        return None

    def delete_bill(self, bill_id: str) -> bool:
        bills = self._load_all()
        remaining = [b for b in bills if b.id != bill_id]
        if len(remaining) == len(bills):
            return False
        self._store_all(remaining)
        if self.get_current_bill_id() == bill_id:
            self.set_current_bill_id(None)
        logger.debug("bill_deleted", bill_id=bill_id)
        return True

    def list_bills(self) -> list[Bill]:
        return sorted(self._load_all(), key=lambda b: b.created_at, reverse=True)

    def get_current_bill_id(self) -> Optional[str]:
        return self._store.get_item(self._current_bill_key)

    def set_current_bill_id(self, bill_id: Optional[str]) -> None:
        if bill_id:
            self._store.set_item(self._current_bill_key, bill_id)
        else:
            self._store.remove_item(self._current_bill_key)


def create_bill_storage(settings: Optional[StorageSettings] = None) -> KeyValueBillStorage:
    """Build bill storage from configuration (QUICKSPLIT_STORAGE_*)."""
    settings = settings or get_settings().storage

    if settings.backend == "memory":
        store: KeyValueStore = InMemoryKeyValueStore()
    else:
        store = JsonFileKeyValueStore(settings.file_path)

    logger.info("bill_storage_created", backend=settings.backend)
    return KeyValueBillStorage(
        store,
        bills_key=settings.bills_key,
        current_bill_key=settings.current_bill_key,
    )


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class InMemoryAuditStorage(AuditStorageInterface):
    """Bounded in-memory audit trail."""

    def __init__(self, max_events: int = 1000):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    def append_event(self, event: AuditEvent) -> bool:
        if any(e.event_id == event.event_id for e in self._events):
            raise DuplicateError(f"Audit event {event.event_id} already recorded")
        self._events.append(event)
        return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_events_by_entity(self, entity_id: str) -> list[AuditEvent]:
        return [e for e in self._events if e.entity_id == entity_id]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
