"""Tests for MemoryStore."""

from pathlib import Path

import pytest

from vitalcoach.memory import MemoryCategory, MemoryEntry, MemoryStore


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    """Create a MemoryStore with a temporary database."""
    store = MemoryStore(tmp_path / "test_memory.db")
    store.init_db()
    yield store
    store.close()


def _entry(content: str, user_id: int = 1, **kwargs) -> MemoryEntry:
    return MemoryEntry(user_id=user_id, content=content, **kwargs)


class TestMemoryStoreInit:
    """Tests for MemoryStore initialization."""

    def test_creates_db_directory(self, tmp_path: Path):
        """Store creates parent directories if they don't exist."""
        nested_path = tmp_path / "nested" / "dir" / "memory.db"
        store = MemoryStore(nested_path)
        store.init_db()
        assert nested_path.exists()
        store.close()

    def test_init_db_idempotent(self, store: MemoryStore):
        store.init_db()
        store.init_db()


class TestMemoryStoreSave:
    """Tests for saving entries."""

    def test_save_returns_id_and_timestamp(self, store: MemoryStore):
        saved = store.save_entry(_entry("Likes tea", category=MemoryCategory.PREFERENCES))
        assert saved.id is not None
        assert saved.created_at is not None
        assert saved.category is MemoryCategory.PREFERENCES

    def test_round_trips_keywords_and_embedding(self, store: MemoryStore):
        saved = store.save_entry(_entry("Runs daily", keywords=("runs", "daily"), embedding=(0.1, 0.2)))
        loaded = store.get(saved.id)
        assert loaded.keywords == ("runs", "daily")
        assert loaded.embedding == (0.1, 0.2)


class TestFindActiveContaining:
    """Tests for fragment lookup."""

    def test_finds_fragment_case_insensitively(self, store: MemoryStore):
        saved = store.save_entry(_entry("Goal [sh:ABCDEF0123456789]"))
        assert store.find_active_containing(1, "abcdef01") == [saved.id]

    def test_ignores_other_users(self, store: MemoryStore):
        store.save_entry(_entry("Goal [sh:abcdef0123456789]", user_id=2))
        assert store.find_active_containing(1, "abcdef01") == []

    def test_ignores_inactive(self, store: MemoryStore):
        saved = store.save_entry(_entry("Goal [sh:abcdef0123456789]"))
        store.deactivate(saved.id)
        assert store.find_active_containing(1, "abcdef01") == []


class TestGetActive:
    """Tests for ranked retrieval."""

    def test_orders_by_importance_then_recency(self, store: MemoryStore):
        low = store.save_entry(_entry("low", importance_score=0.3))
        high = store.save_entry(_entry("high", importance_score=0.9))
        newer_low = store.save_entry(_entry("newer low", importance_score=0.3))

        ids = [m.id for m in store.get_active(1)]
        assert ids == [high.id, newer_low.id, low.id]

    def test_respects_limit(self, store: MemoryStore):
        for i in range(6):
            store.save_entry(_entry(f"memory {i}"))
        assert len(store.get_active(1, limit=5)) == 5

    def test_count_and_deactivate(self, store: MemoryStore):
        saved = store.save_entry(_entry("one"))
        store.save_entry(_entry("two"))
        assert store.count_active(1) == 2
        assert store.deactivate(saved.id) is True
        assert store.deactivate(saved.id) is False
        assert store.count_active(1) == 1
        assert store.get(saved.id).is_active is False
