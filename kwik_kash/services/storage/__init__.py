"""
Storage backends

Budget records and audit events, behind one interface each.
Backends: in-memory (tests), JSON files (default) and Google Sheets.
"""

from kwik_kash.services.storage.interface import (
    DEFAULT_KEY_PREFIX,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    RecordKey,
    StorageError,
)
from kwik_kash.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
)
from kwik_kash.services.storage.json_file import JsonFileBudgetStorage
from kwik_kash.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "DEFAULT_KEY_PREFIX",
    "RecordKey",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    # Local file implementation
    "JsonFileBudgetStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
]
