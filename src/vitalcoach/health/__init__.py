"""Health records and nutrition aggregation."""

from .models import (
    DailyNutritionSummary,
    HealthRecord,
    MealType,
    NutritionMealSummary,
    NutritionMetadata,
    NutritionUpdateRequest,
    WeeklyNutritionAverages,
)
from .nutrition import NutritionAggregationService, aggregate_nutrition
from .store import HealthStore

__all__ = [
    "DailyNutritionSummary",
    "HealthRecord",
    "HealthStore",
    "MealType",
    "NutritionAggregationService",
    "NutritionMealSummary",
    "NutritionMetadata",
    "NutritionUpdateRequest",
    "WeeklyNutritionAverages",
    "aggregate_nutrition",
]
