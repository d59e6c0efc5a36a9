"""Tests for nutrition aggregation."""

from datetime import date, datetime
from pathlib import Path

import pytest

from vitalcoach.cache import TTLCache
from vitalcoach.health import (
    HealthRecord,
    HealthStore,
    MealType,
    NutritionAggregationService,
    NutritionUpdateRequest,
    aggregate_nutrition,
)
from vitalcoach.health.models import MEAL_TYPES, NUTRIENTS
from vitalcoach.health.nutrition import day_bounds

DAY = date(2024, 3, 1)
NOW = datetime(2024, 3, 1, 20, 0)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store(tmp_path: Path) -> HealthStore:
    store = HealthStore(tmp_path / "health.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store: HealthStore, clock: FakeClock) -> NutritionAggregationService:
    return NutritionAggregationService(store, cache=TTLCache(3600, clock=clock), now=lambda: NOW)


def nutrition(data_type: str, value: str, ts: datetime, meal: str | None = None) -> HealthRecord:
    return HealthRecord(
        user_id=1,
        data_type=data_type,
        value=value,
        timestamp=ts,
        category="nutrition",
        metadata={"mealType": meal} if meal else {},
    )


def assert_totals_match_meals(summary) -> None:
    for nutrient in NUTRIENTS:
        meal_sum = sum(getattr(summary.meal_breakdown[m], nutrient) for m in MEAL_TYPES)
        assert summary.total(nutrient) == meal_sum


class TestAggregate:
    """Tests for aggregate_nutrition."""

    def test_empty_day(self):
        summary = aggregate_nutrition([], DAY, NOW)

        assert summary.entry_count == 0
        assert summary.total_calories == 0
        assert set(summary.meal_breakdown) == set(MealType)
        assert_totals_match_meals(summary)

    def test_totals_are_sum_of_meals(self):
        records = [
            nutrition("calories", "400", datetime(2024, 3, 1, 8), "breakfast"),
            nutrition("protein", "20.5", datetime(2024, 3, 1, 8), "breakfast"),
            nutrition("calories", "650", datetime(2024, 3, 1, 13), "lunch"),
            nutrition("calories", "150", datetime(2024, 3, 1, 16)),
            nutrition("sodium", "300", datetime(2024, 3, 1, 19), "dinner"),
        ]
        summary = aggregate_nutrition(records, DAY, NOW)

        assert summary.total_calories == 1200
        assert summary.total_protein == 20.5
        assert summary.meal_breakdown[MealType.SNACK].calories == 150
        assert summary.meal_breakdown[MealType.BREAKFAST].entry_count == 2
        assert summary.entry_count == 5
        assert_totals_match_meals(summary)

    def test_invalid_meal_tag_goes_to_snack(self):
        summary = aggregate_nutrition([nutrition("calories", "90", datetime(2024, 3, 1, 10), "brunch")], DAY)
        assert summary.meal_breakdown[MealType.SNACK].calories == 90

    def test_unparseable_values_are_skipped(self):
        records = [
            nutrition("calories", "abc", datetime(2024, 3, 1, 8), "breakfast"),
            nutrition("calories", "100", datetime(2024, 3, 1, 8), "breakfast"),
        ]
        summary = aggregate_nutrition(records, DAY)

        assert summary.total_calories == 100
        assert summary.entry_count == 1

    def test_to_dict(self):
        summary = aggregate_nutrition([nutrition("fat", "12", datetime(2024, 3, 1, 8), "lunch")], DAY, NOW)
        data = summary.to_dict()
        assert data["date"] == "2024-03-01"
        assert data["total_fat"] == 12
        assert data["meal_breakdown"]["lunch"]["fat"] == 12


class TestDayBounds:
    def test_covers_whole_day(self):
        start, end = day_bounds(DAY)
        assert start == datetime(2024, 3, 1, 0, 0, 0)
        assert end == datetime(2024, 3, 1, 23, 59, 59, 999000)


class TestDailySummary:
    """Tests for cached daily summaries."""

    def test_only_records_in_day(self, service: NutritionAggregationService, store: HealthStore):
        store.add_record(nutrition("calories", "100", datetime(2024, 3, 1, 0, 0), "breakfast"))
        store.add_record(nutrition("calories", "200", datetime(2024, 3, 1, 23, 59, 59), "dinner"))
        store.add_record(nutrition("calories", "999", datetime(2024, 3, 2, 0, 0), "breakfast"))
        store.add_record(
            HealthRecord(user_id=1, data_type="calories", value="5", timestamp=datetime(2024, 3, 1, 9))
        )

        assert service.get_daily_summary(1, DAY).value.total_calories == 300

    def test_cached_until_invalidated(self, service: NutritionAggregationService, store: HealthStore):
        store.add_record(nutrition("calories", "100", datetime(2024, 3, 1, 8), "breakfast"))
        service.get_daily_summary(1, DAY)

        store.add_record(nutrition("calories", "50", datetime(2024, 3, 1, 9), "breakfast"))
        cached = service.get_daily_summary(1, DAY)
        assert cached.metadata["cache_hit"] is True
        assert cached.value.total_calories == 100

        service.invalidate_cache(1, DAY)
        assert service.get_daily_summary(1, DAY).value.total_calories == 150

    def test_cache_expires_after_an_hour(
        self, service: NutritionAggregationService, store: HealthStore, clock: FakeClock
    ):
        service.get_daily_summary(1, DAY)
        clock.now = 3600
        assert service.get_daily_summary(1, DAY).metadata["cache_hit"] is False

    def test_mutating_result_leaves_cache_intact(
        self, service: NutritionAggregationService, store: HealthStore
    ):
        store.add_record(nutrition("calories", "100", datetime(2024, 3, 1, 8), "breakfast"))
        first = service.get_daily_summary(1, DAY).value
        first.meal_breakdown[MealType.BREAKFAST].calories = 9999

        second = service.get_daily_summary(1, DAY).value
        assert second.total_calories == 100
        second.meal_breakdown[MealType.BREAKFAST].calories = 0
        assert service.get_daily_summary(1, DAY).value.total_calories == 100

    def test_store_failure_is_degraded_and_not_cached(self, tmp_path: Path):
        store = HealthStore(tmp_path / "uninitialised.db")
        service = NutritionAggregationService(store, now=lambda: NOW)

        outcome = service.get_daily_summary(1, DAY)

        assert outcome.degraded
        assert "no such table" in outcome.error
        assert outcome.value.entry_count == 0
        assert outcome.value.total_calories == 0
        assert len(service.cache) == 0
        store.close()

    def test_weekly_averages_survive_store_failure(self, tmp_path: Path):
        store = HealthStore(tmp_path / "uninitialised.db")
        averages = NutritionAggregationService(store).get_weekly_averages(1, DAY)
        assert averages.days_with_data == 0
        store.close()

    def test_add_entry_invalidates(self, service: NutritionAggregationService):
        service.get_daily_summary(1, DAY)
        service.add_nutrition_entry(1, "calories", 300, datetime(2024, 3, 1, 12), MealType.LUNCH)

        summary = service.get_daily_summary(1, DAY).value
        assert summary.meal_breakdown[MealType.LUNCH].calories == 300

    def test_range_is_inclusive(self, service: NutritionAggregationService):
        summaries = service.get_summaries_by_range(1, date(2024, 3, 1), date(2024, 3, 3))
        assert [s.date for s in summaries] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]

    def test_meal_breakdown(self, service: NutritionAggregationService):
        service.add_nutrition_entry(1, "protein", 30, datetime(2024, 3, 1, 19), MealType.DINNER)
        assert service.get_meal_breakdown(1, DAY)[MealType.DINNER].protein == 30

    def test_invalidate_user_cache(self, service: NutritionAggregationService):
        service.get_daily_summary(1, date(2024, 3, 1))
        service.get_daily_summary(1, date(2024, 3, 2))
        service.get_daily_summary(2, date(2024, 3, 1))

        assert service.invalidate_user_cache(1) == 2
        assert len(service.cache) == 1


class TestWeeklyAverages:
    """Tests for weekly averages."""

    def test_averages_only_days_with_data(self, service: NutritionAggregationService):
        service.add_nutrition_entry(1, "calories", 2000, datetime(2024, 3, 1, 12), MealType.LUNCH)
        service.add_nutrition_entry(1, "calories", 1501, datetime(2024, 3, 3, 12), MealType.LUNCH)

        averages = service.get_weekly_averages(1, DAY)

        assert averages.days_with_data == 2
        assert averages.average_calories == 1751

    def test_empty_week(self, service: NutritionAggregationService):
        averages = service.get_weekly_averages(1, DAY)
        assert averages.days_with_data == 0
        assert averages.average_calories == 0


class TestUpdateEntry:
    """Tests for overwriting existing values."""

    def test_updates_existing_nutrients_only(self, service: NutritionAggregationService):
        service.add_nutrition_entry(1, "calories", 400, datetime(2024, 3, 1, 8), MealType.BREAKFAST)
        service.get_daily_summary(1, DAY)

        updated = service.update_nutrition_entry(
            NutritionUpdateRequest(user_id=1, date=DAY, meal_type=MealType.BREAKFAST, calories=350, protein=25)
        )

        assert updated == 1
        summary = service.get_daily_summary(1, DAY).value
        assert summary.total_calories == 350
        assert summary.total_protein == 0

    def test_meal_filter(self, service: NutritionAggregationService):
        service.add_nutrition_entry(1, "calories", 400, datetime(2024, 3, 1, 8), MealType.BREAKFAST)
        service.add_nutrition_entry(1, "calories", 700, datetime(2024, 3, 1, 19), MealType.DINNER)

        service.update_nutrition_entry(
            NutritionUpdateRequest(user_id=1, date=DAY, meal_type=MealType.DINNER, calories=600)
        )

        breakdown = service.get_meal_breakdown(1, DAY)
        assert breakdown[MealType.BREAKFAST].calories == 400
        assert breakdown[MealType.DINNER].calories == 600

    def test_timestamps_are_preserved(self, service: NutritionAggregationService, store: HealthStore):
        ts = datetime(2024, 3, 1, 8, 15)
        service.add_nutrition_entry(1, "calories", 400, ts, MealType.BREAKFAST)
        service.update_nutrition_entry(NutritionUpdateRequest(user_id=1, date=DAY, calories=420))

        assert store.get_records(1)[0].timestamp == ts

    def test_no_matching_records(self, service: NutritionAggregationService):
        assert service.update_nutrition_entry(NutritionUpdateRequest(user_id=1, date=DAY, calories=1)) == 0
