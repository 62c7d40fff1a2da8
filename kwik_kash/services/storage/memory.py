"""
In-Memory Storage

Used by the tests and by ephemeral sessions that should leave nothing
behind. Payloads are kept as JSON text so callers can never mutate a
stored record by holding on to the object they saved.
"""

import json
from typing import Any, Optional
from uuid import UUID

from kwik_kash.models.audit import AuditEvent
from kwik_kash.services.storage.interface import (
    DEFAULT_KEY_PREFIX,
    AuditStorageInterface,
    BudgetStorageInterface,
    RecordKey,
    StorageError,
)


class InMemoryBudgetStorage(BudgetStorageInterface):
    """Budget records in a dict keyed by (user_id, record name)."""

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self._records: dict[tuple[str, str], str] = {}

    async def load_record(self, user_id: str, key: RecordKey) -> Optional[Any]:
        raw = self._records.get((user_id, self.record_name(key)))
        return json.loads(raw) if raw is not None else None

    async def save_record(self, user_id: str, key: RecordKey, payload: Any) -> bool:
        try:
            self._records[(user_id, self.record_name(key))] = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Payload for {key} is not JSON serializable: {e}")
        return True

    async def delete_records(self, user_id: str) -> int:
        keys = [k for k in self._records if k[0] == user_id]
        for k in keys:
            del self._records[k]
        return len(keys)

    def record_names(self, user_id: str) -> list[str]:
        return sorted(name for uid, name in self._records if uid == user_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events in a list, oldest first."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [e for e in reversed(self._events) if user_id is None or e.user_id == user_id]
        return events[:limit]
