"""
Lead Tracker - adopts backend lead scores and latches human escalation.
"""
import logging
import math
from typing import Optional

from widget_engine.models.lead import LeadState

logger = logging.getLogger(__name__)


def clamp_score(value: float) -> int:
    """Round and clamp a backend score into 0-100."""
    return max(0, min(100, int(round(value))))


class LeadTracker:
    """
    Holds LeadState for one session.

    The score is absolute: each turn's backend value replaces the previous
    one. Escalation only ever goes false -> true.
    """

    def __init__(self):
        self.state = LeadState()

    def apply(self, score: Optional[float], escalated: bool) -> bool:
        """
        Apply one backend turn.

        Returns:
            True if this turn flipped the escalation latch
        """
        new_score = self.state.score
        if score is not None and not math.isfinite(score):
            logger.warning(f"Ignoring non-finite backend lead score {score}")
            score = None
        if score is not None:
            new_score = clamp_score(score)
            if new_score != score:
                logger.warning(f"Backend lead score {score} adjusted to {new_score}")

        newly_escalated = escalated and not self.state.escalated
        self.state = LeadState(
            score=new_score,
            escalated=self.state.escalated or escalated,
        )
        if newly_escalated:
            logger.info(f"Conversation escalated to a human (lead score {new_score})")
        return newly_escalated

    def reset(self) -> None:
        self.state = LeadState()
