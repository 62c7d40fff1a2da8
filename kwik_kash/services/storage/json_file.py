"""
JSON File Storage

DESIGN DECISION: One directory per user, one JSON file per record:

    <data_dir>/<user_id>/kwik-kash-profile.json
    <data_dir>/<user_id>/kwik-kash-goals.json
    ...

Writes go to a temporary file in the same directory which then replaces
the record with os.replace(), so a crash mid-write never leaves a
half-written record behind.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from kwik_kash.services.storage.interface import (
    DEFAULT_KEY_PREFIX,
    BudgetStorageInterface,
    RecordKey,
    StorageError,
)


_SAFE_USER_ID = re.compile(r"^[A-Za-z0-9_.@+-]+$")


class JsonFileBudgetStorage(BudgetStorageInterface):
    """Budget records as JSON files on the local disk."""

    def __init__(
        self,
        data_dir: Union[str, Path],
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        super().__init__(key_prefix)
        self._root = Path(data_dir)

    def _user_dir(self, user_id: str) -> Path:
        if not _SAFE_USER_ID.match(user_id) or user_id in (".", ".."):
            raise StorageError(f"Invalid user id for file storage: {user_id!r}")
        return self._root / user_id

    def _record_path(self, user_id: str, key: RecordKey) -> Path:
        return self._user_dir(user_id) / f"{self.record_name(key)}.json"

    async def load_record(self, user_id: str, key: RecordKey) -> Optional[Any]:
        path = self._record_path(user_id, key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {path.name}: {e}")

    async def save_record(self, user_id: str, key: RecordKey, payload: Any) -> bool:
        path = self._record_path(user_id, key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(payload, tmp, ensure_ascii=False, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
            return True
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to save {path.name}: {e}")

    async def delete_records(self, user_id: str) -> int:
        user_dir = self._user_dir(user_id)
        if not user_dir.exists():
            return 0
        removed = 0
        try:
            for key in RecordKey:
                path = self._record_path(user_id, key)
                if path.exists():
                    path.unlink()
                    removed += 1
        except OSError as e:
            raise StorageError(f"Failed to delete records of {user_id}: {e}")
        return removed
