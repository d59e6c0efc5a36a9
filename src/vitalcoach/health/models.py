"""Data models for health records and nutrition summaries."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


MEAL_TYPES: tuple[MealType, ...] = tuple(MealType)
NUTRIENTS: tuple[str, ...] = ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium")
NUTRITION_CATEGORY = "nutrition"


@dataclass(frozen=True)
class HealthRecord:
    """A single time-series health measurement.

    Attributes:
        user_id: Owner of the record.
        data_type: What was measured (steps, calories, weight, ...).
        value: Raw value as text, parsed by consumers.
        timestamp: Local time of the measurement.
        category: Grouping such as 'nutrition' or 'activity'.
        unit: Optional unit label.
        source: Device or 'manual'.
        metadata: Free-form extra data (meal type for nutrition).
        id: Database ID, None for new records.
    """

    user_id: int
    data_type: str
    value: str
    timestamp: datetime
    category: str = "general"
    unit: str | None = None
    source: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    def numeric_value(self) -> float | None:
        """Value as float, or None when it does not parse."""
        try:
            number = float(self.value)
        except (TypeError, ValueError):
            return None
        if number != number:  # NaN
            return None
        return number


@dataclass(frozen=True)
class NutritionMetadata:
    """Validated view of a nutrition record's metadata.

    ``defaulted`` is True when the meal tag was missing or invalid and the
    record was placed in the snack bucket.
    """

    meal_type: MealType
    defaulted: bool = False

    @classmethod
    def from_metadata(cls, metadata: Any) -> "NutritionMetadata":
        if isinstance(metadata, dict):
            raw = metadata.get("mealType", metadata.get("meal_type"))
            if isinstance(raw, str):
                try:
                    return cls(meal_type=MealType(raw))
                except ValueError:
                    pass
        return cls(meal_type=MealType.SNACK, defaulted=True)


@dataclass
class NutritionMealSummary:
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    entry_count: int = 0

    def add(self, nutrient: str, value: float) -> None:
        setattr(self, nutrient, getattr(self, nutrient) + value)

    def to_dict(self) -> dict[str, float]:
        data: dict[str, float] = {n: getattr(self, n) for n in NUTRIENTS}
        data["entry_count"] = self.entry_count
        return data


@dataclass
class DailyNutritionSummary:
    """Nutrition totals for one user and calendar day.

    Day totals are always the sum of the four meal buckets.
    """

    date: date
    meal_breakdown: dict[MealType, NutritionMealSummary]
    entry_count: int
    last_updated: datetime

    def total(self, nutrient: str) -> float:
        if nutrient not in NUTRIENTS:
            raise KeyError(nutrient)
        return sum(getattr(self.meal_breakdown[meal], nutrient) for meal in MEAL_TYPES)

    @property
    def total_calories(self) -> float:
        return self.total("calories")

    @property
    def total_protein(self) -> float:
        return self.total("protein")

    @property
    def total_carbs(self) -> float:
        return self.total("carbs")

    @property
    def total_fat(self) -> float:
        return self.total("fat")

    @property
    def total_fiber(self) -> float:
        return self.total("fiber")

    @property
    def total_sugar(self) -> float:
        return self.total("sugar")

    @property
    def total_sodium(self) -> float:
        return self.total("sodium")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"date": self.date.isoformat()}
        for nutrient in NUTRIENTS:
            data[f"total_{nutrient}"] = self.total(nutrient)
        data["meal_breakdown"] = {
            meal.value: self.meal_breakdown[meal].to_dict() for meal in MEAL_TYPES
        }
        data["entry_count"] = self.entry_count
        data["last_updated"] = self.last_updated.isoformat()
        return data


@dataclass(frozen=True)
class WeeklyNutritionAverages:
    average_calories: int = 0
    average_protein: int = 0
    average_carbs: int = 0
    average_fat: int = 0
    average_fiber: int = 0
    average_sugar: int = 0
    average_sodium: int = 0
    days_with_data: int = 0


@dataclass(frozen=True)
class NutritionUpdateRequest:
    """New values for a day's nutrition entries; None leaves a nutrient alone."""

    user_id: int
    date: date
    meal_type: MealType | None = None
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None

    def components(self) -> dict[str, float]:
        return {n: getattr(self, n) for n in NUTRIENTS if getattr(self, n) is not None}
