"""Tests for the collection cleanup script."""

from unittest.mock import AsyncMock, MagicMock

import pytest

import clear_db
from widget_engine.services.durable_store import DurableStore


@pytest.fixture
def motor_client(monkeypatch, settings):
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    db = MagicMock()
    db.list_collection_names = AsyncMock(return_value=["messages", "conversations", "unrelated"])
    collections = {}
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, MagicMock(drop=AsyncMock()))
    client.__getitem__.return_value = db
    client.collections = collections

    configured = settings.model_copy(update={"mongo_url": "mongodb://localhost:27017"})
    monkeypatch.setattr(clear_db, "get_settings", lambda: configured)
    monkeypatch.setattr(clear_db, "AsyncIOMotorClient", lambda url: client)
    return client


class TestClearDatabase:
    @pytest.mark.asyncio
    async def test_drops_only_widget_collections(self, motor_client) -> None:
        assert await clear_db.main(confirmed=True) == 0

        assert set(motor_client.collections) == {"messages", "conversations"}
        assert set(motor_client.collections) <= set(DurableStore.COLLECTIONS)
        for collection in motor_client.collections.values():
            collection.drop.assert_awaited_once()
        motor_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_client_closed_when_ping_fails(self, motor_client) -> None:
        motor_client.admin.command.side_effect = RuntimeError("no primary")

        assert await clear_db.main(confirmed=True) == 1

        motor_client.close.assert_called_once()
        assert motor_client.collections == {}

    @pytest.mark.asyncio
    async def test_declined_confirmation_drops_nothing(self, motor_client, monkeypatch) -> None:
        monkeypatch.setattr("builtins.input", lambda prompt: "no")

        assert await clear_db.main(confirmed=False) == 0

        assert all(not c.drop.await_count for c in motor_client.collections.values())
        motor_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_mongo_url(self, monkeypatch, settings) -> None:
        monkeypatch.setattr(clear_db, "get_settings", lambda: settings)

        assert await clear_db.main(confirmed=True) == 1
