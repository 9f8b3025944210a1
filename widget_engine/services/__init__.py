"""Services module for the Chat Widget Engine."""
from .controller import WidgetController
from .durable_store import DurableStore
from .inference_client import InferenceClient
from .registry import WidgetRegistry

__all__ = ["WidgetController", "DurableStore", "InferenceClient", "WidgetRegistry"]
