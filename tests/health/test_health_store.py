"""Tests for HealthStore."""

from datetime import datetime
from pathlib import Path

import pytest

from vitalcoach.health import HealthRecord, HealthStore


@pytest.fixture
def store(tmp_path: Path) -> HealthStore:
    store = HealthStore(tmp_path / "health.db")
    store.init_db()
    yield store
    store.close()


def record(data_type: str, value: str, ts: datetime, **kwargs) -> HealthRecord:
    return HealthRecord(user_id=1, data_type=data_type, value=value, timestamp=ts, **kwargs)


class TestHealthStore:
    """Tests for record storage and querying."""

    def test_add_returns_id(self, store: HealthStore):
        saved = store.add_record(record("steps", "8000", datetime(2024, 3, 1, 9, 0)))
        assert saved.id is not None

    def test_round_trips_metadata_and_timestamp(self, store: HealthStore):
        ts = datetime(2024, 3, 1, 12, 30, 15, 250000)
        store.add_record(record("calories", "500", ts, category="nutrition", metadata={"mealType": "lunch"}))

        loaded = store.get_records(1)[0]
        assert loaded.timestamp == ts
        assert loaded.metadata == {"mealType": "lunch"}
        assert loaded.category == "nutrition"

    def test_time_range_is_inclusive(self, store: HealthStore):
        start = datetime(2024, 3, 1, 0, 0)
        end = datetime(2024, 3, 1, 23, 59, 59, 999000)
        store.add_record(record("steps", "1", start))
        store.add_record(record("steps", "2", end))
        store.add_record(record("steps", "3", datetime(2024, 3, 2, 0, 0)))

        values = sorted(r.value for r in store.get_records(1, start=start, end=end))
        assert values == ["1", "2"]

    def test_filters_by_category_and_type(self, store: HealthStore):
        ts = datetime(2024, 3, 1, 8, 0)
        store.add_record(record("steps", "100", ts, category="activity"))
        store.add_record(record("sleep", "7", ts, category="sleep"))
        store.add_record(record("calories", "300", ts, category="nutrition"))

        assert [r.data_type for r in store.get_records(1, category="nutrition")] == ["calories"]
        types = {r.data_type for r in store.get_records(1, data_types=["steps", "sleep"])}
        assert types == {"steps", "sleep"}

    def test_ordering_and_limit(self, store: HealthStore):
        store.add_record(record("weight", "180", datetime(2024, 3, 1)))
        store.add_record(record("weight", "178", datetime(2024, 3, 5)))

        assert store.get_records(1, limit=1)[0].value == "178"
        assert store.get_records(1, newest_first=False)[0].value == "180"

    def test_update_and_delete(self, store: HealthStore):
        saved = store.add_record(record("steps", "100", datetime(2024, 3, 1)))
        assert store.update_value(saved.id, "200") is True
        assert store.get_records(1)[0].value == "200"
        assert store.delete(saved.id) is True
        assert store.get_records(1) == []

    def test_other_users_excluded(self, store: HealthStore):
        store.add_record(HealthRecord(user_id=2, data_type="steps", value="1", timestamp=datetime(2024, 3, 1)))
        assert store.get_records(1) == []
