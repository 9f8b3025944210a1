"""Data models for the Chat Widget Engine."""
from .lead import LeadState
from .message import FileMeta, Message, QuickAction
from .session import (
    ConversationSession,
    InitState,
    PageContext,
    QuickActionOutcome,
    SessionMode,
    WidgetSnapshot,
)
from .inference import (
    InferenceMalformed,
    InferenceRequest,
    InferenceSuccess,
    parse_inference_payload,
)

__all__ = [
    "LeadState",
    "FileMeta",
    "Message",
    "QuickAction",
    "ConversationSession",
    "InitState",
    "PageContext",
    "QuickActionOutcome",
    "SessionMode",
    "WidgetSnapshot",
    "InferenceMalformed",
    "InferenceRequest",
    "InferenceSuccess",
    "parse_inference_payload",
]
