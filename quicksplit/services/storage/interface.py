"""
Storage Contracts

DESIGN DECISION: Storage sits behind small abstract interfaces so that:
1. A JSON file can be swapped for any other key-value backend
2. Tests run against in-memory storage
3. Nothing in the engine or session knows how bills are stored

Only raw bill fields are ever persisted. Totals and status are
recomputed after loading.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from quicksplit.models.audit import AuditEvent
from quicksplit.models.bill import Bill


class KeyValueStore(ABC):
    """
    Minimal string key-value store.

    Mirrors the browser-style getItem/setItem/removeItem contract.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value under key, replacing any existing value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        pass


class BillStorageInterface(ABC):
    """
    Persistence for Bill snapshots and the "current bill" pointer.
    """

    @abstractmethod
    def save_bill(self, bill: Bill) -> None:
        """
        Insert a bill, or replace the stored bill with the same id.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    def get_bill_by_id(self, bill_id: str) -> Optional[Bill]:
        """
        Load one bill.

        Returns:
            The bill if found, None otherwise
        """
        pass

    @abstractmethod
    def delete_bill(self, bill_id: str) -> bool:
        """
        Delete a bill by ID.

        Returns:
            True if a bill was deleted
        """
        pass

    @abstractmethod
    def list_bills(self) -> list[Bill]:
        """
        List all stored bills, newest first (by created_at).
        """
        pass

    @abstractmethod
    def get_current_bill_id(self) -> Optional[str]:
        """Id of the bill the user was last editing, if any."""
        pass

    @abstractmethod
    def set_current_bill_id(self, bill_id: Optional[str]) -> None:
        """Remember the bill being edited. None clears it."""
        pass


class AuditStorageInterface(ABC):
    """
    Where AuditLogger keeps events.

    Events are never edited or removed once stored.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Store one event at the end of the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one correlation ID, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(self, entity_id: str) -> list[AuditEvent]:
        """Events about one bill, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """A read or write against the backing store failed."""
    pass


class NotFoundError(StorageError):
    """No stored entity has the requested id."""
    pass


class DuplicateError(StorageError):
    """An entity with this id is already stored."""
    pass
