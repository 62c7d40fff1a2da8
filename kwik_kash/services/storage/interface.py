"""
Storage contracts.

Ledgers never talk to a backend directly. The session loads and saves
whole JSON records through BudgetStorageInterface, one per RecordKey and
user, and hands audit events to an AuditStorageInterface.

Backends:
- InMemory*: tests and throwaway sessions
- JsonFileBudgetStorage: a single user on one machine
- GoogleSheets*: state and audit trail visible in a spreadsheet
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from kwik_kash.models.audit import AuditEvent


DEFAULT_KEY_PREFIX = "kwik-kash-"


class RecordKey(str, Enum):
    """The logical records persisted per user."""
    PROFILE = "profile"
    GOALS = "goals"
    TRANSACTIONS = "transactions"
    FIXED_EXPENSE_PAYMENTS = "fixed-expense-payments"


class StorageError(Exception):
    """A backend could not read or write."""


class ConnectionError(StorageError):
    """The backend is unreachable or refused the credentials."""


class BudgetStorageInterface(ABC):
    """
    Per-user budget records.

    Payloads are JSON-compatible values. A backend must return what was
    last saved for the same (user_id, key) and never mix users.
    """

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        self._key_prefix = key_prefix

    def record_name(self, key: RecordKey) -> str:
        """Namespaced record name, e.g. 'kwik-kash-profile'."""
        return f"{self._key_prefix}{RecordKey(key).value}"

    @abstractmethod
    async def load_record(self, user_id: str, key: RecordKey) -> Optional[Any]:
        """
        Read one record.

        Returns None when nothing was saved under the key yet.
        Raises StorageError when the backend cannot be read.
        """

    @abstractmethod
    async def save_record(self, user_id: str, key: RecordKey, payload: Any) -> bool:
        """Overwrite one record. Raises StorageError on failure."""

    @abstractmethod
    async def delete_records(self, user_id: str) -> int:
        """Drop every record of a user and return how many went."""


class AuditStorageInterface(ABC):
    """Write-once store for AuditEvents."""

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Store the event. False when the backend refused it."""

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one user action, oldest first."""

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Newest events first, at most `limit` of them.

        With user_id, only events about that user's budget.
        """
