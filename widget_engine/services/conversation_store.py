"""
Conversation State Store - append-only message list and session metadata.
"""
from typing import List, Sequence

from widget_engine.models.message import Message, QuickAction
from widget_engine.models.session import ConversationSession


class ConversationStore:
    """Mutable widget state. Only the controller's coroutines touch it."""

    def __init__(self):
        self.session = ConversationSession()
        self._messages: List[Message] = []
        self._quick_actions: List[QuickAction] = []
        self.in_flight = 0
        self.connection_error = False
        self.ready = False

    @property
    def epoch(self) -> int:
        return self.session.epoch

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def quick_actions(self) -> List[QuickAction]:
        return list(self._quick_actions)

    @property
    def is_typing(self) -> bool:
        return self.in_flight > 0

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def replace_quick_actions(self, actions: Sequence[QuickAction]) -> None:
        self._quick_actions = list(actions)

    def clear_quick_actions(self) -> None:
        self._quick_actions = []

    def start_epoch(self, epoch: int) -> None:
        """Drop everything from the previous session."""
        self.session = ConversationSession(epoch=epoch)
        self._messages = []
        self._quick_actions = []
        self.in_flight = 0
        self.connection_error = False
        self.ready = False
