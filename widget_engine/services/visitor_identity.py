"""
Visitor Identity - stable per-browser visitor identifier.
"""
import json
import logging
import os
import random
import string
import time
from threading import Lock
from typing import Dict, Optional, Protocol

from widget_engine.core.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Local persistent key-value storage (browser localStorage equivalent)."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStorage:
    """Process-local storage. Used in tests and for embedded use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileKeyValueStorage:
    """
    JSON file storage with atomic writes (write to temp, then replace).

    Read and write failures raise StorageUnavailableError so the identity
    manager can fall back to a session-scoped id.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = Lock()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning(f"{self.path} corrupted - treating as empty")
            return {}
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {self.path}: {e}")
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        temp_file = self.path + ".tmp"
        with self._lock:
            data = self._load()
            data[key] = value
            try:
                with open(temp_file, "w") as f:
                    json.dump(data, f, separators=(",", ":"))
                os.replace(temp_file, self.path)
            except OSError as e:
                raise StorageUnavailableError(f"Cannot write {self.path}: {e}")


class CookieKeyValueStorage:
    """
    Storage backed by the request cookies of one HTTP call.

    Writes are collected in `pending` and set on the response by the router.
    """

    def __init__(self, cookies: Dict[str, str]):
        self._cookies = dict(cookies)
        self.pending: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.pending.get(key) or self._cookies.get(key) or None

    def set(self, key: str, value: str) -> None:
        self.pending[key] = value


def generate_visitor_id() -> str:
    """Generate `visitor_<ms timestamp>_<9 char base36 suffix>`."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choices(alphabet, k=9))
    return f"visitor_{int(time.time() * 1000)}_{suffix}"


class VisitorIdentityManager:
    """Produces the visitor id once and keeps returning it."""

    def __init__(self, storage: Optional[KeyValueStorage], storage_key: str = "widget_visitor_id"):
        self.storage = storage
        self.storage_key = storage_key
        self._visitor_id: Optional[str] = None
        self.persisted = False

    def get_or_create_visitor_id(self) -> str:
        """
        Read the stored visitor id, creating and storing one if absent.

        Never raises. If storage is missing or broken the id is kept for
        this manager only (session-scoped).
        """
        if self._visitor_id:
            return self._visitor_id

        stored = None
        if self.storage is not None:
            try:
                stored = self.storage.get(self.storage_key)
            except Exception as e:
                logger.warning(f"Visitor storage read failed, using session-scoped id: {e}")
                self._visitor_id = generate_visitor_id()
                return self._visitor_id

        if stored:
            self._visitor_id = stored
            self.persisted = True
            return stored

        visitor_id = generate_visitor_id()
        if self.storage is not None:
            try:
                self.storage.set(self.storage_key, visitor_id)
                self.persisted = True
                logger.info(f"Created visitor id {visitor_id}")
            except Exception as e:
                logger.warning(f"Visitor storage write failed, id is session-scoped: {e}")
        self._visitor_id = visitor_id
        return visitor_id
