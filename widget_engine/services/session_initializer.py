"""
Session Initializer - connectivity probe, durable session creation and
ephemeral fallback.

Sub-step failures (probe, profile upsert, conversation insert) are isolated
and logged. Only an exception escaping the whole procedure switches to the
minimal error session, so the widget always ends up with a usable chat.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence
from pydantic import BaseModel

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import InitializationFatalError
from widget_engine.models.message import Message, QuickAction
from widget_engine.models.session import (
    ERROR_PREFIX,
    OFFLINE_PREFIX,
    ConversationSession,
    InitState,
    PageContext,
    SessionMode,
    is_synthetic_id,
)
from widget_engine.services.durable_store import DurableStore
from widget_engine.services.events import SESSION_OPENED, EventBus
from widget_engine.services.task_queue import PersistenceQueue
from widget_engine.services.templates import (
    DEFAULT_QUICK_ACTIONS,
    ERROR_QUICK_ACTIONS,
    ERROR_WELCOME,
    welcome_message,
)

logger = logging.getLogger(__name__)


class SyntheticIdFactory:
    """Issues `<prefix><ms>` ids that never repeat within a process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0

    def next(self, prefix: str) -> str:
        ms = int(self._clock() * 1000)
        if ms <= self._last:
            ms = self._last + 1
        self._last = ms
        return f"{prefix}{ms}"


class InitializationResult(BaseModel):
    """Everything the controller needs to open a session."""
    session: ConversationSession
    welcome: Message
    quick_actions: List[QuickAction]
    connection_error: bool = False


class SessionInitializer:
    """Runs the initialization procedure for one session epoch."""

    def __init__(
        self,
        store: Optional[DurableStore],
        queue: PersistenceQueue,
        events: EventBus,
        settings: Optional[Settings] = None,
        ids: Optional[SyntheticIdFactory] = None,
        quick_actions: Optional[Sequence[QuickAction]] = None,
    ):
        self.store = store
        self.queue = queue
        self.events = events
        self.settings = settings or get_settings()
        self.ids = ids or SyntheticIdFactory()
        self.quick_actions = list(quick_actions) if quick_actions else list(DEFAULT_QUICK_ACTIONS)

    async def run(
        self,
        visitor_id: str,
        page: PageContext,
        epoch: int,
        on_state: Optional[Callable[[InitState], None]] = None,
    ) -> InitializationResult:
        """
        Initialize a session for `visitor_id`.

        Raises:
            InitializationFatalError: an unexpected exception escaped setup.
                The caller recovers with error_session().
        """
        try:
            return await self._initialize(visitor_id, page, epoch, on_state)
        except Exception as e:
            raise InitializationFatalError(f"Session setup failed: {e}") from e

    async def _initialize(
        self,
        visitor_id: str,
        page: PageContext,
        epoch: int,
        on_state: Optional[Callable[[InitState], None]],
    ) -> InitializationResult:
        connected = await self._probe()
        if on_state is not None:
            on_state(InitState.CONNECTED if connected else InitState.DISCONNECTED)

        visitor_profile_id = None
        conversation_id = None
        if connected:
            try:
                visitor_profile_id = await self.store.upsert_visitor_profile(visitor_id, page)
            except Exception as e:
                logger.error(f"Visitor profile upsert failed, continuing without profile: {e}")

            try:
                conversation_id = await self.store.insert_conversation(
                    visitor_id, visitor_profile_id, page
                )
            except Exception as e:
                logger.error(f"Error creating conversation, continuing offline: {e}")

        if conversation_id:
            self.queue.submit(
                self.store.insert_conversation_context(conversation_id),
                "conversation context",
            )
            self.queue.submit(
                self.store.insert_analytics_event(
                    conversation_id, "chat_opened", {"page": page.path}
                ),
                "chat_opened analytics",
            )
        else:
            conversation_id = self.ids.next(OFFLINE_PREFIX)

        mode = SessionMode.EPHEMERAL if is_synthetic_id(conversation_id) else SessionMode.PERSISTED
        session = ConversationSession(
            conversation_id=conversation_id,
            mode=mode,
            visitor_id=visitor_id,
            visitor_profile_id=visitor_profile_id,
            connected=connected,
            epoch=epoch,
        )

        welcome = Message(id="welcome", text=welcome_message(self.settings), sender="bot")
        quick_actions = list(self.quick_actions)

        self.events.emit(SESSION_OPENED, {"conversationId": conversation_id, "visitorId": visitor_id})

        logger.info(
            f"Session ready - Conversation: {conversation_id}, Mode: {mode.value}, "
            f"Connected: {connected}, Epoch: {epoch}"
        )
        return InitializationResult(session=session, welcome=welcome, quick_actions=quick_actions)

    async def _probe(self) -> bool:
        if self.store is None:
            logger.info("No durable backend configured - starting ephemeral session")
            return False
        try:
            await asyncio.wait_for(self.store.ping(), timeout=self.settings.probe_timeout_seconds)
            return True
        except Exception as e:
            logger.warning(f"Durable backend unreachable - starting ephemeral session: {e}")
            return False

    def error_session(self, visitor_id: str, epoch: int) -> InitializationResult:
        """Minimal functional session used when initialization fails outright."""
        session = ConversationSession(
            conversation_id=self.ids.next(ERROR_PREFIX),
            mode=SessionMode.EPHEMERAL,
            visitor_id=visitor_id,
            epoch=epoch,
        )
        return InitializationResult(
            session=session,
            welcome=Message(id="welcome", text=ERROR_WELCOME, sender="bot"),
            quick_actions=list(ERROR_QUICK_ACTIONS),
            connection_error=True,
        )
