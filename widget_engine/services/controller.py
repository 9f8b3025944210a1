"""
Widget Controller - single owner of the chat widget state machine.

Commands: initialize, send_message, select_quick_action, reset.
The view layer only ever sees immutable WidgetSnapshot objects.
"""
import logging
from typing import Optional, Sequence

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import InitializationFatalError
from widget_engine.models.message import FileMeta, Message, QuickAction
from widget_engine.models.session import (
    InitState,
    PageContext,
    QuickActionOutcome,
    WidgetSnapshot,
)
from widget_engine.services.conversation_store import ConversationStore
from widget_engine.services.dispatcher import MessageDispatcher
from widget_engine.services.durable_store import DurableStore
from widget_engine.services.events import EventBus
from widget_engine.services.inference_client import InferenceClient
from widget_engine.services.lead_tracker import LeadTracker
from widget_engine.services.quick_actions import Navigator, QuickActionEngine
from widget_engine.services.session_initializer import SessionInitializer, SyntheticIdFactory
from widget_engine.services.task_queue import PersistenceQueue
from widget_engine.services.visitor_identity import (
    FileKeyValueStorage,
    MemoryKeyValueStorage,
    VisitorIdentityManager,
)

logger = logging.getLogger(__name__)


class WidgetController:
    """
    Chat widget engine for one browser widget.

    Every initialization starts a new session epoch. Replies and
    initializations that complete after a newer epoch has started are
    discarded, so a stale response can never leak into a fresh session.
    """

    def __init__(
        self,
        inference: InferenceClient,
        store: Optional[DurableStore] = None,
        *,
        identity: Optional[VisitorIdentityManager] = None,
        settings: Optional[Settings] = None,
        page: Optional[PageContext] = None,
        events: Optional[EventBus] = None,
        queue: Optional[PersistenceQueue] = None,
        navigator: Optional[Navigator] = None,
        quick_actions: Optional[Sequence[QuickAction]] = None,
        ids: Optional[SyntheticIdFactory] = None,
    ):
        self.settings = settings or get_settings()
        self.queue = queue or PersistenceQueue()
        self.events = events or EventBus(self.queue)
        if identity is None:
            if self.settings.visitor_storage_path:
                storage = FileKeyValueStorage(self.settings.visitor_storage_path)
            else:
                storage = MemoryKeyValueStorage()
            identity = VisitorIdentityManager(storage, self.settings.visitor_storage_key)
        self.identity = identity
        self.page = page or PageContext()
        self.store = store

        self.conversation = ConversationStore()
        self.lead = LeadTracker()
        self.initializer = SessionInitializer(
            store,
            self.queue,
            self.events,
            settings=self.settings,
            ids=ids,
            quick_actions=quick_actions,
        )
        self.dispatcher = MessageDispatcher(
            self.conversation,
            self.lead,
            inference,
            store,
            self.queue,
            self.events,
            settings=self.settings,
        )
        self.quick_action_engine = QuickActionEngine(
            send=self.send_message,
            reset=self.reset,
            can_request_human=self.can_request_human,
            settings=self.settings,
            navigator=navigator,
        )

        self._state = InitState.IDLE
        self._epoch = 0

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    async def initialize(self, page: Optional[PageContext] = None) -> WidgetSnapshot:
        """Run the session initializer and open a new session epoch."""
        if page is not None:
            self.page = page

        self._epoch += 1
        epoch = self._epoch
        self.conversation.start_epoch(epoch)
        self.lead.reset()
        self._state = InitState.INITIALIZING

        def on_state(state: InitState) -> None:
            if self._epoch == epoch:
                self._state = state

        try:
            visitor_id = self.identity.get_or_create_visitor_id()
            try:
                result = await self.initializer.run(visitor_id, self.page, epoch, on_state)
            except InitializationFatalError as e:
                logger.error(f"Chat initialization error: {e.message}", exc_info=True)
                result = self.initializer.error_session(visitor_id, epoch)

            if self._epoch != epoch:
                logger.info(f"Discarding initialization for epoch {epoch} - superseded by {self._epoch}")
                return self.snapshot()

            self.conversation.session = result.session
            self.conversation.append(result.welcome)
            self.conversation.replace_quick_actions(result.quick_actions)
            self.conversation.connection_error = result.connection_error
            self.conversation.ready = True
        finally:
            if self._epoch == epoch:
                self._state = InitState.READY

        return self.snapshot()

    async def reset(self) -> WidgetSnapshot:
        """Throw the current session away and initialize from scratch."""
        self._state = InitState.IDLE
        return await self.initialize()

    def can_request_human(self) -> bool:
        return not (self.lead.state.escalated or self.conversation.connection_error)

    async def send_message(self, text: str, attachment: Optional[FileMeta] = None) -> Optional[Message]:
        return await self.dispatcher.send_message(text, attachment)

    async def select_quick_action(self, action: QuickAction) -> QuickActionOutcome:
        return await self.quick_action_engine.select(action)

    def snapshot(self) -> WidgetSnapshot:
        lead = self.lead.state
        connection_error = self.conversation.connection_error

        if connection_error:
            placeholder = "Connection issue..."
        elif lead.escalated:
            placeholder = "Chat with our expert..."
        else:
            placeholder = "Type your message..."

        if lead.escalated:
            status_label = "🟢 Expert Connected"
        else:
            status_label = f"🤖 AI Assistant | {self.settings.company_name}"

        return WidgetSnapshot(
            state=self._state,
            epoch=self._epoch,
            session=self.conversation.session,
            messages=self.conversation.messages,
            quick_actions=self.conversation.quick_actions,
            lead=lead,
            is_typing=self.conversation.is_typing,
            connection_error=connection_error,
            placeholder=placeholder,
            status_label=status_label,
            can_request_human=self.can_request_human(),
        )

    async def aclose(self) -> None:
        """Wait for outstanding background writes."""
        await self.queue.drain()
