"""
Inference endpoint wire models.

Responses are validated on receipt into a tagged union: InferenceSuccess or
InferenceMalformed. Anything that is not a well-formed success is treated as
an inference failure by the dispatcher.
"""
from typing import Any, List, Optional, Literal, Union
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .message import FileMeta, QuickAction


class InferenceRequest(BaseModel):
    """Request body sent to the inference endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    conversation_id: str = Field(..., alias="conversationId")
    visitor_id: str = Field(..., alias="visitorId")
    visitor_profile_id: Optional[str] = Field(None, alias="visitorProfileId")
    file: Optional[FileMeta] = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class InferenceSuccess(BaseModel):
    """Well-formed response from the inference endpoint."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: Literal["success"] = "success"
    response: str = Field(..., min_length=1, description="Bot reply text")
    type: Literal["text", "file", "announcement", "error"] = "text"
    confidence: Optional[float] = Field(None, ge=0, le=1, allow_inf_nan=False)
    intent: Optional[str] = None
    lead_score: Optional[float] = Field(
        None, allow_inf_nan=False, validation_alias=AliasChoices("leadScore", "lead_score")
    )
    escalated: bool = Field(
        False, validation_alias=AliasChoices("escalated", "shouldEscalate")
    )
    escalation_reason: Optional[str] = Field(
        None, validation_alias=AliasChoices("escalationReason", "escalation_reason")
    )
    quick_actions: Optional[List[QuickAction]] = Field(
        None, validation_alias=AliasChoices("quickActions", "quick_actions")
    )
    powered_by: Optional[str] = None
    error_fallback: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        # Backend may omit or send an unknown message type
        if value in ("text", "file", "announcement", "error"):
            return value
        return "text"

    @field_validator("escalated", "error_fallback", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class InferenceMalformed(BaseModel):
    """Response body that does not match the success schema."""
    kind: Literal["malformed"] = "malformed"
    reason: str
    payload: Any = None


InferenceOutcome = Union[InferenceSuccess, InferenceMalformed]


def parse_inference_payload(payload: Any) -> InferenceOutcome:
    """Validate a decoded JSON body into the tagged inference outcome."""
    if not isinstance(payload, dict):
        return InferenceMalformed(
            reason=f"expected a JSON object, got {type(payload).__name__}",
            payload=payload,
        )
    try:
        return InferenceSuccess.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        return InferenceMalformed(reason=f"invalid fields: {fields}", payload=payload)
