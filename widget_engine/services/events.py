"""
Event Bus - fire-and-forget observability events.

Listeners are plain callables or coroutine functions taking (event_name, payload).
A failing listener is logged and never affects the emitter or other listeners.
"""
import inspect
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from widget_engine.services.task_queue import PersistenceQueue

logger = logging.getLogger(__name__)

SESSION_OPENED = "session-opened"
MESSAGE_RECEIVED = "message-received"

Listener = Callable[[str, Dict[str, Any]], Any]


class EventBus:
    """In-process publish/subscribe hub with a bounded event history."""

    MAX_HISTORY = 100

    def __init__(self, queue: Optional[PersistenceQueue] = None):
        self._listeners: List[Listener] = []
        self._queue = queue
        self.history: Deque[Dict[str, Any]] = deque(maxlen=self.MAX_HISTORY)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.history.append({
            "event": event_name,
            "payload": dict(payload),
            "timestamp": datetime.now(timezone.utc),
        })
        logger.info(f"Event {event_name}: {payload}")

        for listener in list(self._listeners):
            try:
                result = listener(event_name, payload)
            except Exception as e:
                logger.error(f"Event listener failed for {event_name}: {e}")
                continue
            if inspect.isawaitable(result):
                if self._queue is not None:
                    self._queue.submit(result, f"event listener {event_name}")
                else:
                    if inspect.iscoroutine(result):
                        result.close()
                    logger.warning(f"Dropped async listener for {event_name}: no queue configured")
