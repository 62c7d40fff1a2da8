"""Tests for the storage backends."""

import json

import pytest
from tenacity import wait_none

from kwik_kash.models.audit import AuditEvent, AuditEventType
from kwik_kash.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    JsonFileBudgetStorage,
    RecordKey,
    StorageError,
)
from kwik_kash.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    STATE_COLUMNS,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
)


class FakeWorksheet:
    """Minimal gspread.Worksheet stand-in backed by a list of rows."""

    def __init__(self, header, fail=False):
        self.rows = [list(header)]
        self.fail = fail
        self.updates = []

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        if self.fail:
            raise RuntimeError("quota exceeded")
        self.rows.append([str(v) for v in row])

    def update(self, range_name=None, values=None, value_input_option=None):
        self.updates.append(range_name)
        start, _ = range_name.split(":")
        self.rows[int(start[1:]) - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self, fail_audit=False):
        self.state_sheet = FakeWorksheet(STATE_COLUMNS)
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS, fail=fail_audit)

    def get_state_sheet(self):
        return self.state_sheet

    def get_audit_sheet(self):
        return self.audit_sheet


class TestInMemoryBudgetStorage:
    """Dict-backed records."""

    @pytest.mark.asyncio
    async def test_missing_record_is_none(self):
        storage = InMemoryBudgetStorage()
        assert await storage.load_record("user-1", RecordKey.PROFILE) is None

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        storage = InMemoryBudgetStorage()
        await storage.save_record("user-1", RecordKey.GOALS, [{"name": "Laptop"}])
        assert await storage.load_record("user-1", RecordKey.GOALS) == [{"name": "Laptop"}]
        assert storage.record_names("user-1") == ["kwik-kash-goals"]

    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self):
        storage = InMemoryBudgetStorage()
        payload = {"a": 1}
        await storage.save_record("user-1", RecordKey.PROFILE, payload)
        payload["a"] = 2
        assert await storage.load_record("user-1", RecordKey.PROFILE) == {"a": 1}

    @pytest.mark.asyncio
    async def test_users_are_isolated(self):
        storage = InMemoryBudgetStorage()
        await storage.save_record("user-1", RecordKey.PROFILE, {"income": "1"})
        assert await storage.load_record("user-2", RecordKey.PROFILE) is None

    @pytest.mark.asyncio
    async def test_unserializable_payload(self):
        with pytest.raises(StorageError):
            await InMemoryBudgetStorage().save_record("user-1", RecordKey.PROFILE, {"x": object()})

    @pytest.mark.asyncio
    async def test_delete_records(self):
        storage = InMemoryBudgetStorage()
        await storage.save_record("user-1", RecordKey.PROFILE, {})
        await storage.save_record("user-1", RecordKey.GOALS, [])
        await storage.save_record("user-2", RecordKey.GOALS, [])
        assert await storage.delete_records("user-1") == 2
        assert storage.record_names("user-1") == []
        assert storage.record_names("user-2") == ["kwik-kash-goals"]

    def test_custom_prefix(self):
        assert InMemoryBudgetStorage("test-").record_name(RecordKey.FIXED_EXPENSE_PAYMENTS) == (
            "test-fixed-expense-payments"
        )


class TestJsonFileBudgetStorage:
    """One JSON file per record."""

    @pytest.mark.asyncio
    async def test_save_writes_namespaced_file(self, tmp_path):
        storage = JsonFileBudgetStorage(tmp_path)
        await storage.save_record("user-1", RecordKey.TRANSACTIONS, [{"amount": "10.00"}])

        path = tmp_path / "user-1" / "kwik-kash-transactions.json"
        assert json.loads(path.read_text(encoding="utf-8")) == [{"amount": "10.00"}]
        assert await storage.load_record("user-1", RecordKey.TRANSACTIONS) == [{"amount": "10.00"}]

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_files(self, tmp_path):
        storage = JsonFileBudgetStorage(tmp_path)
        await storage.save_record("user-1", RecordKey.GOALS, [1])
        await storage.save_record("user-1", RecordKey.GOALS, [1, 2])
        assert await storage.load_record("user-1", RecordKey.GOALS) == [1, 2]
        assert [p.name for p in (tmp_path / "user-1").iterdir()] == ["kwik-kash-goals.json"]

    @pytest.mark.asyncio
    async def test_missing_record(self, tmp_path):
        assert await JsonFileBudgetStorage(tmp_path).load_record("user-1", RecordKey.GOALS) is None

    @pytest.mark.asyncio
    async def test_corrupt_record_raises(self, tmp_path):
        (tmp_path / "user-1").mkdir()
        (tmp_path / "user-1" / "kwik-kash-profile.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileBudgetStorage(tmp_path).load_record("user-1", RecordKey.PROFILE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", ["../escape", "..", "a/b", ""])
    async def test_rejects_unsafe_user_ids(self, tmp_path, user_id):
        with pytest.raises(StorageError):
            await JsonFileBudgetStorage(tmp_path).save_record(user_id, RecordKey.GOALS, [])

    @pytest.mark.asyncio
    async def test_delete_records(self, tmp_path):
        storage = JsonFileBudgetStorage(tmp_path)
        await storage.save_record("user-1", RecordKey.PROFILE, {})
        await storage.save_record("user-1", RecordKey.GOALS, [])
        assert await storage.delete_records("user-1") == 2
        assert await storage.delete_records("user-1") == 0
        assert await storage.delete_records("nobody") == 0


class TestGoogleSheetsBudgetStorage:
    """Upsert rows in the state sheet."""

    @pytest.mark.asyncio
    async def test_append_then_update_in_place(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsBudgetStorage(client)

        await storage.save_record("user-1", RecordKey.GOALS, [])
        await storage.save_record("user-1", RecordKey.GOALS, [{"name": "Trip"}])

        rows = client.state_sheet.rows
        assert len(rows) == 2
        assert rows[1][:2] == ["user-1", "kwik-kash-goals"]
        assert client.state_sheet.updates == ["A2:D2"]
        assert await storage.load_record("user-1", RecordKey.GOALS) == [{"name": "Trip"}]

    @pytest.mark.asyncio
    async def test_delete_only_that_user(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsBudgetStorage(client)
        await storage.save_record("user-1", RecordKey.PROFILE, {})
        await storage.save_record("user-2", RecordKey.PROFILE, {})
        await storage.save_record("user-1", RecordKey.GOALS, [])

        assert await storage.delete_records("user-1") == 2
        assert [r[0] for r in client.state_sheet.rows[1:]] == ["user-2"]


class TestAuditStorage:
    """Append-only audit logs."""

    @pytest.mark.asyncio
    async def test_in_memory_recent_is_newest_first(self):
        storage = InMemoryAuditStorage()
        first = AuditEvent(event_type=AuditEventType.GOAL_ADDED, user_id="user-1", description="a")
        second = AuditEvent(event_type=AuditEventType.GOAL_UPDATED, user_id="user-2", description="b")
        await storage.append_event(first)
        await storage.append_event(second)

        assert await storage.get_recent_events() == [second, first]
        assert await storage.get_recent_events(user_id="user-1") == [first]
        assert await storage.get_recent_events(limit=1) == [second]

    @pytest.mark.asyncio
    async def test_sheets_round_trip(self):
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id="user-1",
            entity_type="transaction",
            entity_id="tx-1",
            description="Transaction logged",
            details={"amount": "250.00"},
            is_user_action=True,
        )
        assert await storage.append_event(event) is True

        [loaded] = await storage.get_recent_events(user_id="user-1")
        assert loaded.event_id == event.event_id
        assert loaded.details == {"amount": "250.00"}
        assert loaded.is_user_action is True

    @pytest.mark.asyncio
    async def test_sheets_append_failure_returns_false(self, monkeypatch):
        monkeypatch.setattr(GoogleSheetsAuditStorage._append_row.retry, "wait", wait_none())
        storage = GoogleSheetsAuditStorage(FakeSheetsClient(fail_audit=True))
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert await storage.append_event(event) is False
