"""
Conversation message and quick action models.
"""
from typing import Optional, Literal
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field


Sender = Literal["user", "bot", "system"]
MessageType = Literal["text", "file", "announcement", "error"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileMeta(BaseModel):
    """Attachment metadata. No file bytes travel through the engine."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Original file name")
    size: int = Field(..., ge=0, description="Size in bytes as reported by the browser")
    type: str = Field(default="", description="MIME type")


class Message(BaseModel):
    """A single chat message. Messages are never mutated once appended."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    text: str
    sender: Sender
    timestamp: datetime = Field(default_factory=utcnow)
    type: MessageType = "text"
    file: Optional[FileMeta] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)
    intent: Optional[str] = None


class QuickAction(BaseModel):
    """Suggested reply shown to the visitor."""
    model_config = ConfigDict(frozen=True)

    icon: str = ""
    text: str = Field(..., description="Display label, sent verbatim for ordinary actions")
    value: str = Field(..., description="Dispatch key: retry, call, email, human or free-form")
