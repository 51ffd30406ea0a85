"""
Unit tests for the session stores.
"""

import json

import pytest

from seatbook.auth.session_store import FileSessionStore, MemorySessionStore, SessionStore


class TestFileSessionStore:
    """Test the JSON-file session store."""

    @pytest.fixture
    def store(self, tmp_path):
        return FileSessionStore(tmp_path / "nested" / "session.json")

    def test_missing_file_reads_empty(self, store):
        assert store.get_token() is None
        assert store.get_user() is None

    def test_save_and_read_back(self, store):
        store.save_session("abc123", {"email": "student@uni.edu", "role": "USER"})

        assert store.get_token() == "abc123"
        assert store.get_user() == {"email": "student@uni.edu", "role": "USER"}

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data == {"token": "abc123", "user": {"email": "student@uni.edu", "role": "USER"}}

    def test_save_keeps_user_when_only_token_changes(self, store):
        store.save_session("first", {"email": "a@uni.edu"})
        store.save_session("second")

        assert store.get_token() == "second"
        assert store.get_user() == {"email": "a@uni.edu"}

    def test_clear_removes_token_and_user_only(self, store):
        store.save_session("abc123", {"email": "student@uni.edu"})
        data = json.loads(store.path.read_text(encoding="utf-8"))
        data["theme"] = "dark"
        store.path.write_text(json.dumps(data), encoding="utf-8")

        store.clear_session()

        assert store.get_token() is None
        assert store.get_user() is None
        assert json.loads(store.path.read_text(encoding="utf-8")) == {"theme": "dark"}

    def test_clear_without_file_is_noop(self, store):
        store.clear_session()
        assert not store.path.exists()

    def test_changes_from_another_instance_are_visible(self, store):
        other = FileSessionStore(store.path)
        store.save_session("abc123")

        assert other.get_token() == "abc123"
        other.clear_session()
        assert store.get_token() is None

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    def test_corrupt_file_reads_empty(self, store, content):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(content, encoding="utf-8")

        assert store.get_token() is None

    def test_empty_token_counts_as_missing(self, store):
        store.save_session("")
        assert store.get_token() is None


class TestMemorySessionStore:
    """Test the in-memory session store."""

    def test_roundtrip_and_clear(self):
        store = MemorySessionStore()
        assert store.get_token() is None

        store.save_session("tok", {"id": 7})
        assert store.get_token() == "tok"
        assert store.get_user() == {"id": 7}

        store.clear_session()
        assert store.get_token() is None
        assert store.get_user() is None

    def test_both_satisfy_protocol(self, tmp_path):
        assert isinstance(MemorySessionStore(), SessionStore)
        assert isinstance(FileSessionStore(tmp_path / "s.json"), SessionStore)
