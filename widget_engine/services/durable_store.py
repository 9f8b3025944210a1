"""
Durable Store - MongoDB persistence for visitors, conversations and messages.

Every write here is best-effort from the widget's point of view: callers
either isolate failures themselves (session initializer) or run the write on
the persistence queue. Driver errors are re-raised as PersistenceWriteError.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import ConnectivityError, PersistenceWriteError
from widget_engine.models.message import Message, QuickAction
from widget_engine.models.session import PageContext

logger = logging.getLogger(__name__)


class DurableStore:
    """
    Widget persistence on MongoDB.

    Collections:
    - visitor_profiles: one document per visitor id (upserted)
    - conversations: one document per persisted session
    - conversation_context: dialogue stage/topic seed per conversation
    - messages: user and bot turns
    - escalations: human handoff records
    - chatbot_analytics: chat_opened / message_sent events
    - chatbot_errors: inference failures seen by visitors
    """

    COLLECTIONS = (
        "visitor_profiles",
        "conversations",
        "conversation_context",
        "messages",
        "escalations",
        "chatbot_analytics",
        "chatbot_errors",
    )

    def __init__(self, mongo_client: AsyncIOMotorClient, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client = mongo_client
        self.db = mongo_client[settings.mongo_db_name]
        self.profiles_collection = self.db["visitor_profiles"]
        self.conversations_collection = self.db["conversations"]
        self.context_collection = self.db["conversation_context"]
        self.messages_collection = self.db["messages"]
        self.escalations_collection = self.db["escalations"]
        self.analytics_collection = self.db["chatbot_analytics"]
        self.errors_collection = self.db["chatbot_errors"]

    async def ping(self) -> None:
        """Minimal read-only probe."""
        try:
            await self.client.admin.command("ping")
        except Exception as e:
            raise ConnectivityError(f"MongoDB ping failed: {e}") from e

    async def upsert_visitor_profile(self, visitor_id: str, page: PageContext) -> str:
        """
        Create or refresh the visitor profile keyed by visitor id.

        Conflict-safe: a single atomic upsert, so concurrent first visits
        converge on one document.

        Returns:
            Profile document id
        """
        now = datetime.now(timezone.utc)
        try:
            profile = await self.profiles_collection.find_one_and_update(
                {"visitor_id": visitor_id},
                {
                    "$setOnInsert": {"visitor_id": visitor_id, "first_seen": now},
                    "$set": {"last_seen": now},
                    "$inc": {"total_visits": 1},
                    "$push": {"pages_visited": page.path},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except Exception as e:
            raise PersistenceWriteError(f"Profile upsert failed: {e}", "visitor_profiles") from e

        if not profile or "_id" not in profile:
            raise PersistenceWriteError("Profile upsert returned no document", "visitor_profiles")
        return str(profile["_id"])

    async def insert_conversation(
        self,
        visitor_id: str,
        visitor_profile_id: Optional[str],
        page: PageContext,
    ) -> str:
        """Insert a new conversation record. Returns its id."""
        document = {
            "visitor_id": visitor_id,
            "visitor_profile_id": visitor_profile_id,
            "started_at": datetime.now(timezone.utc),
            "channel": "website",
            "status": "active",
            "page_url": page.page_url,
            "referrer_url": page.referrer_url,
            "user_agent": page.user_agent,
            "lead_score": 0,
        }
        try:
            result = await self.conversations_collection.insert_one(document)
        except Exception as e:
            raise PersistenceWriteError(f"Conversation insert failed: {e}", "conversations") from e
        return str(result.inserted_id)

    async def insert_conversation_context(self, conversation_id: str) -> None:
        await self._insert(self.context_collection, {
            "conversation_id": conversation_id,
            "conversation_stage": "greeting",
            "current_topic": "initial_contact",
            "topics_discussed": [],
        })

    async def insert_message(
        self,
        conversation_id: str,
        message: Message,
        quick_actions: Optional[List[QuickAction]] = None,
    ) -> None:
        document: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "message_id": message.id,
            "sender": message.sender,
            "content": message.text,
            "message_type": message.type,
            "file_attachment": message.file.model_dump() if message.file else None,
            "timestamp": message.timestamp,
        }
        if message.sender == "bot":
            document["detected_intent"] = message.intent
            document["confidence"] = message.confidence
            document["quick_actions"] = [a.model_dump() for a in quick_actions or []]
        await self._insert(self.messages_collection, document)

    async def update_lead_score(self, conversation_id: str, score: int) -> None:
        try:
            await self.conversations_collection.update_one(
                {"_id": _object_id(conversation_id)},
                {"$set": {"lead_score": score, "updated_at": datetime.now(timezone.utc)}},
            )
        except Exception as e:
            raise PersistenceWriteError(f"Lead score update failed: {e}", "conversations") from e

    async def insert_escalation(self, conversation_id: str, reason: str, lead_score: int) -> None:
        await self._insert(self.escalations_collection, {
            "conversation_id": conversation_id,
            "escalation_reason": reason,
            "lead_score": lead_score,
            "status": "pending",
            "created_at": datetime.now(timezone.utc),
        })

    async def insert_analytics_event(
        self,
        conversation_id: str,
        event_type: str,
        event_data: Dict[str, Any],
        **fields: Any,
    ) -> None:
        document = {
            "conversation_id": conversation_id,
            "event_type": event_type,
            "event_data": event_data,
            "created_at": datetime.now(timezone.utc),
        }
        document.update(fields)
        await self._insert(self.analytics_collection, document)

    async def insert_error(
        self,
        conversation_id: str,
        error_type: str,
        error_message: str,
        user_message: str,
    ) -> None:
        await self._insert(self.errors_collection, {
            "conversation_id": conversation_id,
            "error_type": error_type,
            "error_message": error_message,
            "user_message": user_message,
            "created_at": datetime.now(timezone.utc),
        })

    async def _insert(self, collection, document: Dict[str, Any]) -> None:
        try:
            await collection.insert_one(document)
        except Exception as e:
            raise PersistenceWriteError(
                f"Insert into {collection.name} failed: {e}", collection.name
            ) from e


def _object_id(value: str):
    """Conversation ids are ObjectId strings when issued by MongoDB."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value
