"""Services package."""

from kwik_kash.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    JsonFileBudgetStorage,
    RecordKey,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "JsonFileBudgetStorage",
    "RecordKey",
    "StorageError",
]
