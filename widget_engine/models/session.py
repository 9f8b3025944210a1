"""
Session data models for the widget state machine.
"""
from enum import Enum
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

from .lead import LeadState
from .message import Message, QuickAction


OFFLINE_PREFIX = "offline_"
ERROR_PREFIX = "error_"


class SessionMode(str, Enum):
    PERSISTED = "persisted"
    EPHEMERAL = "ephemeral"


class InitState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    READY = "ready"


def is_synthetic_id(conversation_id: Optional[str]) -> bool:
    """True for locally synthesized conversation ids (offline_/error_)."""
    if not conversation_id:
        return True
    return conversation_id.startswith((OFFLINE_PREFIX, ERROR_PREFIX))


class PageContext(BaseModel):
    """Page the widget was opened on. Stored with the conversation record."""
    page_url: str = ""
    path: str = "/"
    referrer_url: Optional[str] = None
    user_agent: Optional[str] = None


class ConversationSession(BaseModel):
    """One initialization lifecycle of the widget."""
    model_config = ConfigDict(frozen=True)

    conversation_id: Optional[str] = None
    mode: SessionMode = SessionMode.EPHEMERAL
    visitor_id: Optional[str] = None
    visitor_profile_id: Optional[str] = None
    connected: bool = Field(default=False, description="Probe result: durable backend reachable")
    epoch: int = 0


class WidgetSnapshot(BaseModel):
    """Immutable view of the widget state handed to the presentation layer."""
    model_config = ConfigDict(frozen=True)

    state: InitState
    epoch: int
    session: ConversationSession
    messages: List[Message] = Field(default_factory=list)
    quick_actions: List[QuickAction] = Field(default_factory=list)
    lead: LeadState = Field(default_factory=LeadState)
    is_typing: bool = False
    connection_error: bool = False
    placeholder: str = "Type your message..."
    status_label: str = ""
    can_request_human: bool = True


class QuickActionOutcome(BaseModel):
    """What selecting a quick action did."""
    kind: Literal["message", "navigate", "reset", "ignored"]
    value: str
    text: Optional[str] = None
    uri: Optional[str] = None
