"""
Quick Action Engine - dispatches suggested-reply selections.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

from widget_engine.core.config import Settings, get_settings
from widget_engine.models.message import QuickAction
from widget_engine.models.session import QuickActionOutcome
from widget_engine.services.templates import HUMAN_REQUEST_TEXT, mailto_uri, tel_uri

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Any]


class QuickActionEngine:
    """
    Dispatch table on QuickAction.value:

    - retry: full session reset
    - call / email: tel: / mailto: navigation, no conversational effect
    - human: sends the fixed human-request phrase (ignored once escalated or
      after a connection error)
    - anything else: sends the action label verbatim
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[Any]],
        reset: Callable[[], Awaitable[Any]],
        can_request_human: Callable[[], bool],
        settings: Optional[Settings] = None,
        navigator: Optional[Navigator] = None,
    ):
        self._send = send
        self._reset = reset
        self._can_request_human = can_request_human
        self.settings = settings or get_settings()
        self.navigator = navigator

    async def select(self, action: QuickAction) -> QuickActionOutcome:
        value = action.value

        if value == "retry":
            logger.info("Quick action retry - resetting session")
            await self._reset()
            return QuickActionOutcome(kind="reset", value=value)

        if value in ("call", "email"):
            if value == "call":
                uri = tel_uri(self.settings.contact_phone)
            else:
                uri = mailto_uri(self.settings.contact_email)
            self._navigate(uri)
            return QuickActionOutcome(kind="navigate", value=value, uri=uri)

        if value == "human":
            if not self._can_request_human():
                logger.info("Human request ignored - already escalated or connection lost")
                return QuickActionOutcome(kind="ignored", value=value)
            await self._send(HUMAN_REQUEST_TEXT)
            return QuickActionOutcome(kind="message", value=value, text=HUMAN_REQUEST_TEXT)

        await self._send(action.text)
        return QuickActionOutcome(kind="message", value=value, text=action.text)

    def _navigate(self, uri: str) -> None:
        if self.navigator is None:
            return
        try:
            self.navigator(uri)
        except Exception as e:
            logger.error(f"Navigation to {uri} failed: {e}")
