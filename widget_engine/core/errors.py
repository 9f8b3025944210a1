"""
Error taxonomy for the widget engine.

Only the input errors (attachment, readiness, unknown widget) ever reach a
caller. Everything else is handled at the boundary where it occurs and turned
into a degraded-but-usable widget state.
"""
from typing import Optional


class WidgetEngineError(Exception):
    """Base exception for all widget engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConnectivityError(WidgetEngineError):
    """Durable backend missing or probe failed. Degrades to an ephemeral session."""


class PersistenceWriteError(WidgetEngineError):
    """A durable write failed. Logged only."""

    def __init__(self, message: str, collection: str):
        super().__init__(message)
        self.collection = collection


class InferenceRequestError(WidgetEngineError):
    """Inference call failed: non-success status, transport error, timeout or bad payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InitializationFatalError(WidgetEngineError):
    """Unexpected exception during session setup."""


class StorageUnavailableError(WidgetEngineError):
    """Local key-value storage could not be read or written."""


class AttachmentTooLargeError(WidgetEngineError):
    """Attachment metadata reports a size above the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Attachment of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


class SessionNotReadyError(WidgetEngineError):
    """A message was sent before the first initialization completed."""


class WidgetNotFoundError(WidgetEngineError):
    """No widget controller is registered under the given handle."""
