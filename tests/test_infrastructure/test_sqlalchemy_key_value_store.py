"""Tests for the SQLAlchemy KeyValueStore implementation.

Uses an in-memory SQLite database to verify that the concrete store
satisfies the domain protocol and replaces whole records on write.
"""

import pytest
from sqlalchemy import select

from sportstracker.domain.errors import StorageError
from sportstracker.domain.repositories import KeyValueStore
from sportstracker.infrastructure.repositories import SqlAlchemyKeyValueStore
from sportstracker.models.kv_record import KeyValueRecord


class TestSqlAlchemyKeyValueStore:
    def test_satisfies_protocol(self, kv_store):
        assert isinstance(kv_store, KeyValueStore)

    async def test_missing_key_returns_none(self, kv_store):
        assert await kv_store.get("nope") is None

    async def test_put_then_get_roundtrip(self, kv_store):
        await kv_store.put("users", [{"id": "1", "username": "Ana"}])
        assert await kv_store.get("users") == [{"id": "1", "username": "Ana"}]

    async def test_put_replaces_whole_record(self, kv_store, session_factory):
        await kv_store.put("ledger", {"2024-03-11": True})
        await kv_store.put("ledger", {"2024-03-18": True})

        assert await kv_store.get("ledger") == {"2024-03-18": True}
        async with session_factory() as session:
            rows = (await session.execute(select(KeyValueRecord))).scalars().all()
        assert [r.key for r in rows] == ["ledger"]

    async def test_unicode_preserved(self, kv_store):
        await kv_store.put("types", [{"name": "Vélo", "icon": "🚴"}])
        assert await kv_store.get("types") == [{"name": "Vélo", "icon": "🚴"}]

    async def test_delete_removes_key(self, kv_store):
        await kv_store.put("session", {"id": "1"})
        await kv_store.delete("session")
        assert await kv_store.get("session") is None

    async def test_delete_missing_key_is_noop(self, kv_store):
        await kv_store.delete("never-written")

    async def test_corrupt_json_raises_storage_error(self, kv_store, session_factory):
        async with session_factory() as session:
            session.add(KeyValueRecord(key="users", value="{not json"))
            await session.commit()

        with pytest.raises(StorageError) as exc_info:
            await kv_store.get("users")
        assert exc_info.value.key == "users"

    async def test_unserializable_value_raises_storage_error(self, kv_store):
        with pytest.raises(StorageError):
            await kv_store.put("bad", {"obj": object()})
        assert await kv_store.get("bad") is None

    async def test_separate_instances_share_backend(self, session_factory):
        writer = SqlAlchemyKeyValueStore(session_factory)
        reader = SqlAlchemyKeyValueStore(session_factory)
        await writer.put("settings", {"weekly_goal_minutes": 90})
        assert await reader.get("settings") == {"weekly_goal_minutes": 90}
