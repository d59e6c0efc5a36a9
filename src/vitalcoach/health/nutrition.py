"""Per-day nutrition aggregation with a rebuild-on-miss cache."""

import copy
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable

from ..cache import TTLCache
from ..result import Outcome
from .models import (
    MEAL_TYPES,
    NUTRIENTS,
    NUTRITION_CATEGORY,
    DailyNutritionSummary,
    HealthRecord,
    MealType,
    NutritionMealSummary,
    NutritionMetadata,
    NutritionUpdateRequest,
    WeeklyNutritionAverages,
)
from .store import HealthStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "nutrition-aggregation:"
NUTRITION_CACHE_TTL = 3600.0


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local [00:00:00.000, 23:59:59.999] bounds of a calendar day."""
    return (
        datetime.combine(day, time(0, 0, 0, 0)),
        datetime.combine(day, time(23, 59, 59, 999000)),
    )


def daily_cache_key(user_id: int, day: date) -> str:
    return f"{CACHE_PREFIX}daily:{user_id}:{day.isoformat()}"


def user_cache_prefix(user_id: int) -> str:
    return f"{CACHE_PREFIX}daily:{user_id}:"


def aggregate_nutrition(
    records: Iterable[HealthRecord],
    day: date,
    now: datetime | None = None,
) -> DailyNutritionSummary:
    """Fold a day's nutrition records into a summary.

    Records whose value does not parse are skipped. Records without a
    valid meal tag count toward the snack bucket.
    """
    breakdown = {meal: NutritionMealSummary() for meal in MEAL_TYPES}
    entry_count = 0

    for record in records:
        value = record.numeric_value()
        if value is None:
            logger.debug("Skipping nutrition record %s with value %r", record.id, record.value)
            continue

        meal = breakdown[NutritionMetadata.from_metadata(record.metadata).meal_type]
        if record.data_type in NUTRIENTS:
            meal.add(record.data_type, value)
        meal.entry_count += 1
        entry_count += 1

    return DailyNutritionSummary(
        date=day,
        meal_breakdown=breakdown,
        entry_count=entry_count,
        last_updated=now or datetime.now(),
    )


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class NutritionAggregationService:
    """Builds daily nutrition summaries from raw health records.

    Summaries are cached per (user, day) and rebuilt wholesale on a miss.
    Any write to a day's records invalidates that day's entry.
    """

    def __init__(
        self,
        store: HealthStore,
        cache: TTLCache | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the service.

        Args:
            store: Source of health records.
            cache: Summary cache. A one-hour TTLCache if None.
            now: Source of the current local time.
        """
        self.store = store
        self.cache = cache if cache is not None else TTLCache(NUTRITION_CACHE_TTL)
        self._now = now

    def _fetch_day(self, user_id: int, day: date) -> list[HealthRecord]:
        start, end = day_bounds(day)
        return self.store.get_records(
            user_id, category=NUTRITION_CATEGORY, start=start, end=end
        )

    def get_daily_summary(self, user_id: int, day: date) -> Outcome[DailyNutritionSummary]:
        """Summary for one day, from cache when fresh.

        Callers get their own copy, so mutating it never touches the cache.
        A store failure yields an empty, uncached summary marked degraded.
        """
        key = daily_cache_key(user_id, day)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Returning cached nutrition summary for user %s on %s", user_id, day)
            return Outcome.success(copy.deepcopy(cached), cache_hit=True)

        try:
            records = self._fetch_day(user_id, day)
        except Exception as e:
            logger.error("Failed to load nutrition records for user %s on %s: %s", user_id, day, e)
            return Outcome.fallback(aggregate_nutrition([], day, self._now()), e, cache_hit=False)

        summary = aggregate_nutrition(records, day, self._now())
        self.cache.set(key, summary)
        logger.info(
            "Generated nutrition summary for user %s on %s: %.0f kcal from %d entries",
            user_id,
            day,
            summary.total_calories,
            summary.entry_count,
        )
        return Outcome.success(copy.deepcopy(summary), cache_hit=False)

    def get_summaries_by_range(
        self, user_id: int, start_date: date, end_date: date
    ) -> list[DailyNutritionSummary]:
        """One summary per day from start_date to end_date inclusive."""
        summaries = []
        current = start_date
        while current <= end_date:
            summaries.append(self.get_daily_summary(user_id, current).value)
            current += timedelta(days=1)
        return summaries

    def get_meal_breakdown(self, user_id: int, day: date) -> dict[MealType, NutritionMealSummary]:
        return self.get_daily_summary(user_id, day).value.meal_breakdown

    def get_weekly_averages(self, user_id: int, start_date: date) -> WeeklyNutritionAverages:
        """Rounded daily averages over the 7 days from start_date.

        Only days with at least one entry count toward the average. Days
        whose records could not be loaded count as days without data.
        """
        summaries = self.get_summaries_by_range(user_id, start_date, start_date + timedelta(days=6))
        days_with_data = [s for s in summaries if s.entry_count > 0]
        if not days_with_data:
            return WeeklyNutritionAverages()

        count = len(days_with_data)
        averages = {
            f"average_{nutrient}": _round_half_up(sum(s.total(nutrient) for s in days_with_data) / count)
            for nutrient in NUTRIENTS
        }
        return WeeklyNutritionAverages(days_with_data=count, **averages)

    def add_nutrition_entry(
        self,
        user_id: int,
        data_type: str,
        value: float,
        timestamp: datetime,
        meal_type: MealType | None = None,
        unit: str | None = None,
        source: str = "manual",
    ) -> HealthRecord:
        """Record a nutrient value and invalidate that day's summary."""
        metadata = {"mealType": meal_type.value} if meal_type else {}
        record = self.store.add_record(
            HealthRecord(
                user_id=user_id,
                category=NUTRITION_CATEGORY,
                data_type=data_type,
                value=str(value),
                timestamp=timestamp,
                unit=unit,
                source=source,
                metadata=metadata,
            )
        )
        self.invalidate_cache(user_id, timestamp.date())
        return record

    def update_nutrition_entry(self, request: NutritionUpdateRequest) -> int:
        """Overwrite existing values for a day (and meal, if given).

        Only nutrients that already have a record are changed. The day's
        cached summary is invalidated whether or not anything changed.

        Returns:
            Number of records updated.
        """
        records = self._fetch_day(request.user_id, request.date)
        if request.meal_type is not None:
            records = [
                r for r in records
                if not NutritionMetadata.from_metadata(r.metadata).defaulted
                and NutritionMetadata.from_metadata(r.metadata).meal_type is request.meal_type
            ]

        updated = 0
        for nutrient, value in request.components().items():
            existing = next((r for r in records if r.data_type == nutrient), None)
            if existing is not None and existing.id is not None:
                if self.store.update_value(existing.id, str(value)):
                    updated += 1

        if updated:
            logger.info(
                "Updated %d nutrition entries for user %s on %s",
                updated,
                request.user_id,
                request.date,
            )
        self.invalidate_cache(request.user_id, request.date)
        return updated

    def invalidate_cache(self, user_id: int, day: date) -> None:
        """Drop the cached summary for one user and day."""
        self.cache.invalidate(daily_cache_key(user_id, day))
        logger.debug("Invalidated nutrition cache for user %s on %s", user_id, day)

    def invalidate_user_cache(self, user_id: int) -> int:
        """Drop every cached day for a user."""
        removed = self.cache.invalidate_pattern(user_cache_prefix(user_id))
        logger.debug("Invalidated %d cached nutrition days for user %s", removed, user_id)
        return removed
