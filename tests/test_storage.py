"""
Tests for storage backends

Google Sheets is never called for real: the client is a MagicMock and
each test stubs the worksheet rows it needs.
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from bankapp.models.audit import AuditEventBuilder, AuditEventType
from bankapp.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsKeyValueStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    JsonFileKeyValueStorage,
    StorageError,
)
from bankapp.services.storage.google_sheets import KV_COLUMNS, MAX_CELL_CHARS


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    @pytest.mark.asyncio
    async def test_get_set_delete(self):
        """Test the basic key-value contract."""
        storage = InMemoryKeyValueStorage()

        assert await storage.get("k") is None
        await storage.set("k", "v1")
        await storage.set("k", "v2")
        assert await storage.get("k") == "v2"
        assert await storage.delete("k") is True
        assert await storage.delete("k") is False

    @pytest.mark.asyncio
    async def test_initial_contents_copied(self):
        """Test that the initial dict is not shared."""
        initial = {"k": "v"}
        storage = InMemoryKeyValueStorage(initial)
        await storage.set("k", "changed")
        assert initial == {"k": "v"}

    @pytest.mark.asyncio
    async def test_audit_newest_first(self):
        """Test that recent events come back newest first and limited."""
        storage = InMemoryAuditStorage()
        for count in range(3):
            await storage.append_event(AuditEventBuilder.accounts_cleared(count))

        events = await storage.get_recent_events(limit=2)

        assert [e.details["account_count"] for e in events] == [2, 1]


class TestJsonFileStorage:
    """Tests for the JSON file backend."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        """Test that a store without a file reads as empty."""
        storage = JsonFileKeyValueStorage(tmp_path / "store.json")
        assert await storage.get("bankapp.accounts") is None
        assert await storage.delete("bankapp.accounts") is False

    @pytest.mark.asyncio
    async def test_values_survive_new_instance(self, tmp_path):
        """Test that written values are read back by a fresh instance."""
        path = tmp_path / "nested" / "store.json"
        await JsonFileKeyValueStorage(path).set("bankapp.accounts", "[]")

        storage = JsonFileKeyValueStorage(path)
        assert await storage.get("bankapp.accounts") == "[]"
        assert json.loads(path.read_text(encoding="utf-8")) == {"bankapp.accounts": "[]"}

    @pytest.mark.asyncio
    async def test_delete_keeps_other_keys(self, tmp_path):
        """Test that deleting one key leaves the others."""
        storage = JsonFileKeyValueStorage(tmp_path / "store.json")
        await storage.set("a", "1")
        await storage.set("b", "2")

        assert await storage.delete("a") is True
        assert await storage.get("a") is None
        assert await storage.get("b") == "2"

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path):
        """Test that writes leave only the target file behind."""
        storage = JsonFileKeyValueStorage(tmp_path / "store.json")
        await storage.set("a", "1")
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    @pytest.mark.asyncio
    async def test_empty_file_is_empty_store(self, tmp_path):
        """Test that a zero-length file reads as an empty store."""
        path = tmp_path / "store.json"
        path.write_text("", encoding="utf-8")
        assert await JsonFileKeyValueStorage(path).get("a") is None

    @pytest.mark.parametrize("content", ["{broken", '["not", "an", "object"]'])
    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path, content):
        """Test that an unreadable file raises StorageError instead of being overwritten."""
        path = tmp_path / "store.json"
        path.write_text(content, encoding="utf-8")
        storage = JsonFileKeyValueStorage(path)

        with pytest.raises(StorageError):
            await storage.get("a")
        with pytest.raises(StorageError):
            await storage.set("a", "1")
        assert path.read_text(encoding="utf-8") == content


@pytest.fixture
def kv_sheet() -> MagicMock:
    sheet = MagicMock()
    sheet.get_all_values.return_value = [list(KV_COLUMNS)]
    return sheet


@pytest.fixture
def sheets_client(kv_sheet) -> MagicMock:
    client = MagicMock()
    client.get_kv_sheet.return_value = kv_sheet
    client.get_audit_sheet.return_value = MagicMock()
    return client


class TestGoogleSheetsKeyValueStorage:
    """Tests for the Google Sheets key-value backend."""

    @pytest.mark.asyncio
    async def test_get_missing_key(self, sheets_client):
        """Test that an absent key reads as None."""
        storage = GoogleSheetsKeyValueStorage(sheets_client)
        assert await storage.get("bankapp.accounts") is None

    @pytest.mark.asyncio
    async def test_get_existing_key(self, sheets_client, kv_sheet):
        """Test reading the value column of the matching row."""
        kv_sheet.get_all_values.return_value = [
            list(KV_COLUMNS),
            ["other", "x", "2024-01-01T00:00:00+00:00"],
            ["bankapp.accounts", "[]", "2024-01-01T00:00:00+00:00"],
        ]
        storage = GoogleSheetsKeyValueStorage(sheets_client)
        assert await storage.get("bankapp.accounts") == "[]"

    @pytest.mark.asyncio
    async def test_set_new_key_appends(self, sheets_client, kv_sheet):
        """Test that a new key is appended as a raw row."""
        storage = GoogleSheetsKeyValueStorage(sheets_client)

        await storage.set("bankapp.accounts", "[]")

        args, kwargs = kv_sheet.append_row.call_args
        assert args[0][:2] == ["bankapp.accounts", "[]"]
        assert kwargs["value_input_option"] == "RAW"
        kv_sheet.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_existing_key_updates_row(self, sheets_client, kv_sheet):
        """Test that an existing key is overwritten in place."""
        kv_sheet.get_all_values.return_value = [
            list(KV_COLUMNS),
            ["bankapp.accounts", "old", "2024-01-01T00:00:00+00:00"],
        ]
        storage = GoogleSheetsKeyValueStorage(sheets_client)

        await storage.set("bankapp.accounts", "new")

        kwargs = kv_sheet.update.call_args.kwargs
        assert kwargs["range_name"] == "A2:C2"
        assert kwargs["values"][0][:2] == ["bankapp.accounts", "new"]
        kv_sheet.append_row.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_oversized_value_rejected(self, sheets_client, kv_sheet):
        """Test that values beyond the cell limit are refused before any call."""
        storage = GoogleSheetsKeyValueStorage(sheets_client)

        with pytest.raises(StorageError):
            await storage.set("bankapp.accounts", "x" * (MAX_CELL_CHARS + 1))
        sheets_client.get_kv_sheet.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete(self, sheets_client, kv_sheet):
        """Test deleting removes the matching row only."""
        kv_sheet.get_all_values.return_value = [
            list(KV_COLUMNS),
            ["a", "1", ""],
            ["b", "2", ""],
        ]
        storage = GoogleSheetsKeyValueStorage(sheets_client)

        assert await storage.delete("b") is True
        kv_sheet.delete_rows.assert_called_once_with(3)
        assert await storage.delete("missing") is False

    @pytest.mark.asyncio
    async def test_delete_failure_wrapped(self, sheets_client, kv_sheet):
        """Test that API errors surface as StorageError."""
        kv_sheet.get_all_values.side_effect = RuntimeError("quota exceeded")
        storage = GoogleSheetsKeyValueStorage(sheets_client)

        with pytest.raises(StorageError):
            await storage.delete("a")


class TestGoogleSheetsAuditStorage:
    """Tests for the Google Sheets audit backend."""

    @pytest.mark.asyncio
    async def test_append_event_writes_row(self, sheets_client):
        """Test that an event is appended as a sheets row."""
        storage = GoogleSheetsAuditStorage(sheets_client)
        event = AuditEventBuilder.accounts_cleared(3)

        assert await storage.append_event(event) is True

        sheet = sheets_client.get_audit_sheet.return_value
        sheet.append_row.assert_called_once_with(event.to_sheets_row(), value_input_option="RAW")

    @pytest.mark.asyncio
    async def test_recent_events_parsed_and_sorted(self, sheets_client):
        """Test that rows are parsed back, newest first, skipping junk."""
        older = AuditEventBuilder.accounts_cleared(1)
        newer = AuditEventBuilder.accounts_cleared(2).model_copy(
            update={"timestamp": older.timestamp + timedelta(seconds=1)}
        )
        sheet = sheets_client.get_audit_sheet.return_value
        sheet.get_all_values.return_value = [
            ["event_id", "timestamp"],
            older.to_sheets_row(),
            ["not-a-uuid", "garbage"],
            [],
            newer.to_sheets_row(),
        ]
        storage = GoogleSheetsAuditStorage(sheets_client)

        events = await storage.get_recent_events()

        assert [e.event_id for e in events] == [newer.event_id, older.event_id]
        assert events[0].event_type == AuditEventType.ACCOUNTS_CLEARED
        assert events[0].details == {"account_count": 2}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
