"""Shared fixtures for the widget engine test suite."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import ConnectivityError, PersistenceWriteError
from widget_engine.models.inference import InferenceSuccess
from widget_engine.models.message import Message, QuickAction
from widget_engine.models.session import PageContext
from widget_engine.services.controller import WidgetController
from widget_engine.services.inference_client import InferenceClient
from widget_engine.services.visitor_identity import (
    MemoryKeyValueStorage,
    VisitorIdentityManager,
)


class FakeDurableStore:
    """In-memory stand-in for DurableStore with per-operation failure switches."""

    def __init__(self) -> None:
        self.fail_ping = False
        self.fail_profile = False
        self.fail_conversation = False
        self.fail_writes = False
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.messages: List[Tuple[str, Message]] = []
        self.lead_scores: List[Tuple[str, int]] = []
        self.escalations: List[Tuple[str, str, int]] = []
        self.analytics: List[Tuple[str, str, Dict[str, Any]]] = []
        self.errors: List[Tuple[str, str, str, str]] = []
        self._conversation_seq = 0

    async def ping(self) -> None:
        self.calls.append(("ping", ()))
        if self.fail_ping:
            raise ConnectivityError("ping refused")

    async def upsert_visitor_profile(self, visitor_id: str, page: PageContext) -> str:
        self.calls.append(("upsert_visitor_profile", (visitor_id, page.path)))
        if self.fail_profile:
            raise PersistenceWriteError("duplicate key", "visitor_profiles")
        return f"profile-{visitor_id}"

    async def insert_conversation(
        self, visitor_id: str, visitor_profile_id: Optional[str], page: PageContext
    ) -> str:
        self.calls.append(("insert_conversation", (visitor_id, visitor_profile_id)))
        if self.fail_conversation:
            raise PersistenceWriteError("insert refused", "conversations")
        self._conversation_seq += 1
        return f"conv-{self._conversation_seq}"

    async def insert_conversation_context(self, conversation_id: str) -> None:
        self._write("insert_conversation_context", conversation_id)

    async def insert_message(
        self,
        conversation_id: str,
        message: Message,
        quick_actions: Optional[List[QuickAction]] = None,
    ) -> None:
        self._write("insert_message", conversation_id)
        self.messages.append((conversation_id, message))

    async def update_lead_score(self, conversation_id: str, score: int) -> None:
        self._write("update_lead_score", conversation_id)
        self.lead_scores.append((conversation_id, score))

    async def insert_escalation(self, conversation_id: str, reason: str, lead_score: int) -> None:
        self._write("insert_escalation", conversation_id)
        self.escalations.append((conversation_id, reason, lead_score))

    async def insert_analytics_event(
        self, conversation_id: str, event_type: str, event_data: Dict[str, Any], **fields: Any
    ) -> None:
        self._write("insert_analytics_event", conversation_id)
        self.analytics.append((conversation_id, event_type, event_data))

    async def insert_error(
        self, conversation_id: str, error_type: str, error_message: str, user_message: str
    ) -> None:
        self._write("insert_error", conversation_id)
        self.errors.append((conversation_id, error_type, error_message, user_message))

    def _write(self, name: str, conversation_id: str) -> None:
        self.calls.append((name, (conversation_id,)))
        if self.fail_writes:
            raise PersistenceWriteError(f"{name} refused", name)

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with no durable backend and no .env influence."""
    return Settings(_env_file=None, mongo_url=None)


@pytest.fixture
def fake_store() -> FakeDurableStore:
    return FakeDurableStore()


@pytest.fixture
def inference() -> AsyncMock:
    """Inference client mock answering every message with a plain reply."""
    client = AsyncMock(spec=InferenceClient)
    client.send.return_value = InferenceSuccess(response="Happy to help!", intent="greeting", confidence=0.9)
    return client


@pytest.fixture
def storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture
def make_controller(settings: Settings, inference: AsyncMock, storage: MemoryKeyValueStorage) -> Callable[..., WidgetController]:
    """Factory for controllers sharing the test's settings, inference mock and storage."""

    def _make(store: Optional[FakeDurableStore] = None, **kwargs: Any) -> WidgetController:
        kwargs.setdefault("settings", settings)
        kwargs.setdefault(
            "identity", VisitorIdentityManager(storage, kwargs["settings"].visitor_storage_key)
        )
        return WidgetController(kwargs.pop("inference", inference), store, **kwargs)

    return _make


@pytest.fixture
def reply_after() -> Callable[[asyncio.Event, Any], Callable[..., Any]]:
    """Build a side_effect that holds the inference outcome until the event is set.

    An exception instance as outcome is raised instead of returned.
    """

    def _build(event: asyncio.Event, outcome: Any) -> Callable[..., Any]:
        async def _side_effect(*args: Any, **kwargs: Any) -> InferenceSuccess:
            await event.wait()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        return _side_effect

    return _build
