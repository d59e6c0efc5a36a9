"""Performance tracking for the memory pipeline."""

from .performance import (
    Alert,
    AlertThresholds,
    MetricSummary,
    PerformanceMonitor,
    percentile,
    summarize,
)

__all__ = [
    "Alert",
    "AlertThresholds",
    "MetricSummary",
    "PerformanceMonitor",
    "percentile",
    "summarize",
]
