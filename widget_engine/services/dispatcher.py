"""
Message Dispatcher - sends visitor input to the inference endpoint and
applies the reply (or the fixed fallback) to the conversation.
"""
import logging
from typing import Optional

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import AttachmentTooLargeError, SessionNotReadyError
from widget_engine.models.inference import InferenceRequest, InferenceSuccess
from widget_engine.models.message import FileMeta, Message
from widget_engine.models.session import ConversationSession, SessionMode
from widget_engine.services.conversation_store import ConversationStore
from widget_engine.services.durable_store import DurableStore
from widget_engine.services.events import MESSAGE_RECEIVED, EventBus
from widget_engine.services.inference_client import InferenceClient
from widget_engine.services.lead_tracker import LeadTracker
from widget_engine.services.task_queue import PersistenceQueue
from widget_engine.services.templates import (
    RECOVERY_QUICK_ACTIONS,
    TAKEOVER_ANNOUNCEMENT,
    fallback_message,
)

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """One send = one user message now, one bot or fallback message when the call settles."""

    def __init__(
        self,
        conversation: ConversationStore,
        lead: LeadTracker,
        inference: InferenceClient,
        store: Optional[DurableStore],
        queue: PersistenceQueue,
        events: EventBus,
        settings: Optional[Settings] = None,
    ):
        self.conversation = conversation
        self.lead = lead
        self.inference = inference
        self.store = store
        self.queue = queue
        self.events = events
        self.settings = settings or get_settings()

    async def send_message(self, text: str, attachment: Optional[FileMeta] = None) -> Optional[Message]:
        """
        Send a visitor message.

        Returns:
            The bot (or fallback) message appended for this send, or None when
            the send was a no-op or its reply arrived after a reset.

        Raises:
            AttachmentTooLargeError: attachment above max_attachment_bytes
            SessionNotReadyError: no initialized session yet
        """
        text = text or ""
        if not text.strip() and attachment is None:
            return None
        if attachment is not None and attachment.size > self.settings.max_attachment_bytes:
            raise AttachmentTooLargeError(attachment.size, self.settings.max_attachment_bytes)

        session = self.conversation.session
        if not self.conversation.ready or not session.conversation_id:
            raise SessionNotReadyError("Chat session is not initialized yet")

        epoch = session.epoch
        user_message = Message(
            text=text,
            sender="user",
            type="file" if attachment else "text",
            file=attachment,
        )
        self.conversation.append(user_message)
        self.conversation.clear_quick_actions()
        self.conversation.in_flight += 1

        persisted = self._is_persisted(session)
        if persisted:
            self.queue.submit(
                self.store.insert_message(session.conversation_id, user_message),
                "user message",
            )

        request = InferenceRequest(
            message=text,
            conversation_id=session.conversation_id,
            visitor_id=session.visitor_id or "",
            visitor_profile_id=session.visitor_profile_id,
            file=attachment,
        )

        try:
            reply = await self.inference.send(request)
        except Exception as e:
            if self.conversation.epoch != epoch:
                logger.info(f"Discarding failed reply from epoch {epoch} after reset")
                return None
            logger.error(f"Error sending message: {e}")
            return self._apply_failure(session, text, e, persisted)

        if self.conversation.epoch != epoch:
            logger.info(f"Discarding reply from epoch {epoch} after reset")
            return None
        return self._apply_reply(session, reply, persisted)

    def _apply_reply(self, session: ConversationSession, reply: InferenceSuccess, persisted: bool) -> Message:
        self._stop_typing()
        conversation_id = session.conversation_id

        bot_message = self.conversation.append(Message(
            text=reply.response,
            sender="bot",
            type=reply.type,
            confidence=reply.confidence,
            intent=reply.intent,
        ))
        if persisted:
            self.queue.submit(
                self.store.insert_message(conversation_id, bot_message, reply.quick_actions),
                "bot message",
            )

        newly_escalated = self.lead.apply(reply.lead_score, reply.escalated)
        score = self.lead.state.score
        if persisted and reply.lead_score is not None:
            self.queue.submit(self.store.update_lead_score(conversation_id, score), "lead score")

        if newly_escalated:
            self.conversation.append(Message(
                text=TAKEOVER_ANNOUNCEMENT,
                sender="system",
                type="announcement",
            ))
            if persisted:
                self.queue.submit(
                    self.store.insert_escalation(
                        conversation_id, reply.escalation_reason or "High value lead", score
                    ),
                    "escalation",
                )

        if reply.quick_actions:
            actions = reply.quick_actions
            if self.lead.state.escalated or self.conversation.connection_error:
                actions = [a for a in actions if a.value != "human"]
            self.conversation.replace_quick_actions(actions)

        if persisted:
            self.queue.submit(
                self.store.insert_analytics_event(
                    conversation_id,
                    "message_sent",
                    {"intent": reply.intent, "confidence": reply.confidence},
                    intent=reply.intent,
                    confidence=reply.confidence,
                    lead_score=score,
                ),
                "message_sent analytics",
            )

        self.events.emit(MESSAGE_RECEIVED, {"conversationId": conversation_id, "intent": reply.intent})
        return bot_message

    def _apply_failure(
        self,
        session: ConversationSession,
        text: str,
        error: Exception,
        persisted: bool,
    ) -> Message:
        self._stop_typing()
        fallback = self.conversation.append(Message(
            text=fallback_message(self.settings),
            sender="bot",
            type="error",
        ))
        self.conversation.replace_quick_actions(RECOVERY_QUICK_ACTIONS)

        if persisted:
            self.queue.submit(
                self.store.insert_error(
                    session.conversation_id, "message_send_error", str(error), text
                ),
                "chatbot error",
            )
        return fallback

    def _stop_typing(self) -> None:
        self.conversation.in_flight = max(0, self.conversation.in_flight - 1)

    def _is_persisted(self, session: ConversationSession) -> bool:
        return self.store is not None and session.mode == SessionMode.PERSISTED
