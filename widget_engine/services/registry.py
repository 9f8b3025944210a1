"""
Widget Registry - maps opaque widget handles to live controllers.
"""
import logging
from collections import OrderedDict
from typing import List, Tuple
from uuid import uuid4

from widget_engine.core.errors import WidgetNotFoundError
from widget_engine.services.controller import WidgetController

logger = logging.getLogger(__name__)


class WidgetRegistry:
    """In-process controller registry. Oldest widgets are evicted past `max_widgets`."""

    def __init__(self, max_widgets: int = 1000):
        self.max_widgets = max_widgets
        self._widgets: "OrderedDict[str, WidgetController]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._widgets)

    def add(self, controller: WidgetController) -> Tuple[str, List[WidgetController]]:
        """
        Register a controller.

        Returns:
            (handle, evicted controllers the caller should close)
        """
        handle = uuid4().hex
        self._widgets[handle] = controller
        evicted = []
        while len(self._widgets) > self.max_widgets:
            old_handle, old = self._widgets.popitem(last=False)
            logger.info(f"Evicting widget {old_handle}")
            evicted.append(old)
        return handle, evicted

    def get(self, handle: str) -> WidgetController:
        controller = self._widgets.get(handle)
        if controller is None:
            raise WidgetNotFoundError(f"Unknown widget {handle}")
        self._widgets.move_to_end(handle)
        return controller

    def remove(self, handle: str) -> WidgetController:
        controller = self._widgets.pop(handle, None)
        if controller is None:
            raise WidgetNotFoundError(f"Unknown widget {handle}")
        return controller

    def drain(self) -> List[WidgetController]:
        controllers = list(self._widgets.values())
        self._widgets.clear()
        return controllers
