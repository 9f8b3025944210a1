"""Tests for visitor id generation and storage fallbacks."""

import json
import re

from widget_engine.core.errors import StorageUnavailableError
from widget_engine.services.visitor_identity import (
    CookieKeyValueStorage,
    FileKeyValueStorage,
    MemoryKeyValueStorage,
    VisitorIdentityManager,
    generate_visitor_id,
)

VISITOR_ID_PATTERN = r"visitor_\d+_[a-z0-9]{9}"


class BrokenStorage:
    """Storage whose reads or writes always fail."""

    def __init__(self, fail_get: bool = True, fail_set: bool = True):
        self.fail_get = fail_get
        self.fail_set = fail_set

    def get(self, key):
        if self.fail_get:
            raise StorageUnavailableError("storage disabled")
        return None

    def set(self, key, value):
        if self.fail_set:
            raise StorageUnavailableError("quota exceeded")


class TestGenerateVisitorId:
    def test_format(self) -> None:
        assert re.fullmatch(VISITOR_ID_PATTERN, generate_visitor_id())

    def test_unique(self) -> None:
        assert len({generate_visitor_id() for _ in range(50)}) == 50


class TestVisitorIdentityManager:
    def test_creates_and_stores_id(self) -> None:
        storage = MemoryKeyValueStorage()
        manager = VisitorIdentityManager(storage, "vid")

        visitor_id = manager.get_or_create_visitor_id()

        assert re.fullmatch(VISITOR_ID_PATTERN, visitor_id)
        assert storage.get("vid") == visitor_id
        assert manager.persisted is True

    def test_reuses_stored_id(self) -> None:
        storage = MemoryKeyValueStorage({"vid": "visitor_1_abcdefghi"})
        manager = VisitorIdentityManager(storage, "vid")
        assert manager.get_or_create_visitor_id() == "visitor_1_abcdefghi"

    def test_stable_for_manager_lifetime(self) -> None:
        manager = VisitorIdentityManager(BrokenStorage(), "vid")
        assert manager.get_or_create_visitor_id() == manager.get_or_create_visitor_id()

    def test_unreadable_storage_gives_session_scoped_id(self) -> None:
        manager = VisitorIdentityManager(BrokenStorage(), "vid")

        visitor_id = manager.get_or_create_visitor_id()

        assert re.fullmatch(VISITOR_ID_PATTERN, visitor_id)
        assert manager.persisted is False

    def test_unwritable_storage_gives_session_scoped_id(self) -> None:
        manager = VisitorIdentityManager(BrokenStorage(fail_get=False), "vid")
        assert manager.get_or_create_visitor_id()
        assert manager.persisted is False

    def test_no_storage(self) -> None:
        manager = VisitorIdentityManager(None)
        assert manager.get_or_create_visitor_id()
        assert manager.persisted is False


class TestFileKeyValueStorage:
    def test_roundtrip_survives_new_instance(self, tmp_path) -> None:
        path = str(tmp_path / "visitor.json")
        FileKeyValueStorage(path).set("vid", "visitor_1_abcdefghi")
        assert FileKeyValueStorage(path).get("vid") == "visitor_1_abcdefghi"

    def test_missing_file_is_empty(self, tmp_path) -> None:
        assert FileKeyValueStorage(str(tmp_path / "absent.json")).get("vid") is None

    def test_corrupted_file_is_empty(self, tmp_path) -> None:
        path = tmp_path / "visitor.json"
        path.write_text("{not json")
        storage = FileKeyValueStorage(str(path))

        assert storage.get("vid") is None
        storage.set("vid", "visitor_2_abcdefghi")
        assert json.loads(path.read_text()) == {"vid": "visitor_2_abcdefghi"}

    def test_unwritable_location_raises(self, tmp_path) -> None:
        storage = FileKeyValueStorage(str(tmp_path / "missing-dir" / "visitor.json"))
        manager = VisitorIdentityManager(storage, "vid")

        assert manager.get_or_create_visitor_id()
        assert manager.persisted is False


class TestCookieKeyValueStorage:
    def test_reads_request_cookie(self) -> None:
        storage = CookieKeyValueStorage({"vid": "visitor_3_abcdefghi"})
        assert storage.get("vid") == "visitor_3_abcdefghi"
        assert storage.pending == {}

    def test_writes_are_pending(self) -> None:
        storage = CookieKeyValueStorage({})
        manager = VisitorIdentityManager(storage, "vid")

        visitor_id = manager.get_or_create_visitor_id()

        assert storage.pending == {"vid": visitor_id}
        assert storage.get("vid") == visitor_id
