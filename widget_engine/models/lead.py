"""
Lead qualification state models.
"""
from pydantic import BaseModel, ConfigDict, Field


class LeadState(BaseModel):
    """Backend-asserted lead score and the one-way human handoff latch."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(default=0, ge=0, le=100, description="Lead score (0-100)")
    escalated: bool = Field(default=False, description="Handed off to a human")
