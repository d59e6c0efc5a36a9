"""Rolling-window performance tracking with threshold alerts."""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..events import EventLog

logger = logging.getLogger(__name__)

MAX_SAMPLES = 1000
MAX_RECENT_ALERTS = 100

CACHE_TYPES = ("embedding_cache", "prompt_cache", "memory_retrieval_cache")


@dataclass(frozen=True)
class MetricSummary:
    """Aggregate statistics for a sample window."""

    avg: float
    min: float
    max: float
    count: int


@dataclass
class AlertThresholds:
    """Limits that trigger alerts."""

    memory_processing_ms: float = 100.0
    chat_response_increase_pct: float = 10.0
    error_rate_pct: float = 1.0
    queue_size: int = 1000
    deduplication_hit_rate_pct: float = 5.0
    deduplication_min_checks: int = 100


@dataclass(frozen=True)
class Alert:
    """A threshold breach."""

    type: str
    data: dict[str, Any]
    timestamp: float


def average(samples: Iterable[float]) -> float:
    values = list(samples)
    return sum(values) / len(values) if values else 0.0


def percentile(samples: Iterable[float], pct: float) -> float:
    """Nearest-rank percentile; 0 for an empty window."""
    ordered = sorted(samples)
    if not ordered:
        return 0.0
    index = math.ceil((pct / 100) * len(ordered)) - 1
    return ordered[max(0, index)]


def summarize(samples: Iterable[float]) -> MetricSummary | None:
    """Average, min, max and count, or None for an empty window."""
    values = list(samples)
    if not values:
        return None
    return MetricSummary(
        avg=sum(values) / len(values),
        min=min(values),
        max=max(values),
        count=len(values),
    )


@dataclass
class _Metrics:
    memory_processing_time: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))
    system_prompt_generation_time: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))
    chat_response_time_impact: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))
    deduplication_checks: int = 0
    deduplication_hits: int = 0
    errors: dict[str, int] = field(
        default_factory=lambda: {"memory_processing": 0, "prompt_generation": 0, "deduplication": 0}
    )
    queue_current_size: int = 0
    queue_max_size: int = 0
    queue_processing_rate: float = 0.0
    circuit_breaker_trips: int = 0
    cache_hit_rates: dict[str, float] = field(default_factory=dict)

    @property
    def deduplication_hit_rate(self) -> float:
        if not self.deduplication_checks:
            return 0.0
        return self.deduplication_hits / self.deduplication_checks * 100


class PerformanceMonitor:
    """Tracks memory-pipeline latencies and raises threshold alerts.

    Every sample window is a ring buffer of at most 1000 entries; the
    oldest sample is dropped first. Alerts go to the module logger, the
    optional event log and a bounded list of recent alerts.
    """

    def __init__(
        self,
        thresholds: AlertThresholds | None = None,
        event_log: EventLog | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self.event_log = event_log
        self._clock = clock
        self._metrics = _Metrics()
        self._alerts: deque[Alert] = deque(maxlen=MAX_RECENT_ALERTS)
        self._start_time = clock()

    @property
    def recent_alerts(self) -> list[Alert]:
        return list(self._alerts)

    def samples(self, name: str) -> list[float]:
        """Return a copy of one of the sample windows."""
        window = getattr(self._metrics, name, None)
        if not isinstance(window, deque):
            raise KeyError(name)
        return list(window)

    def track_memory_processing(self, duration_ms: float, success: bool) -> None:
        self._metrics.memory_processing_time.append(duration_ms)
        if not success:
            self._metrics.errors["memory_processing"] += 1

        if duration_ms > self.thresholds.memory_processing_ms:
            self._trigger_alert(
                "memory_processing_slow",
                duration=duration_ms,
                threshold=self.thresholds.memory_processing_ms,
            )

    def track_system_prompt_generation(self, duration_ms: float, success: bool) -> None:
        self._metrics.system_prompt_generation_time.append(duration_ms)
        if not success:
            self._metrics.errors["prompt_generation"] += 1

    def track_deduplication(self, was_hit: bool, processing_ms: float, success: bool = True) -> None:
        metrics = self._metrics
        metrics.deduplication_checks += 1
        if was_hit:
            metrics.deduplication_hits += 1
        if not success:
            metrics.errors["deduplication"] += 1

        if (
            metrics.deduplication_checks > self.thresholds.deduplication_min_checks
            and metrics.deduplication_hit_rate < self.thresholds.deduplication_hit_rate_pct
        ):
            self._trigger_alert(
                "deduplication_hit_rate_low",
                current_rate=metrics.deduplication_hit_rate,
                threshold=self.thresholds.deduplication_hit_rate_pct,
            )

    def track_chat_response_time(self, baseline_ms: float, actual_ms: float) -> None:
        if baseline_ms <= 0:
            logger.debug("Ignoring chat response sample with baseline %s", baseline_ms)
            return
        impact = (actual_ms - baseline_ms) / baseline_ms * 100
        self._metrics.chat_response_time_impact.append(impact)

        if impact > self.thresholds.chat_response_increase_pct:
            self._trigger_alert(
                "chat_response_time_degraded",
                impact=impact,
                threshold=self.thresholds.chat_response_increase_pct,
                baseline_time=baseline_ms,
                actual_time=actual_ms,
            )

    def track_queue_metrics(self, current_size: int, processing_rate: float) -> None:
        metrics = self._metrics
        metrics.queue_current_size = current_size
        metrics.queue_max_size = max(metrics.queue_max_size, current_size)
        metrics.queue_processing_rate = processing_rate

        if current_size > self.thresholds.queue_size:
            self._trigger_alert(
                "queue_size_exceeded",
                current_size=current_size,
                threshold=self.thresholds.queue_size,
            )

    def track_circuit_breaker_trip(self, user_id: int, reason: str) -> None:
        self._metrics.circuit_breaker_trips += 1
        self._trigger_alert("circuit_breaker_tripped", user_id=user_id, reason=reason)

    def track_cache_performance(self, cache_type: str, hit_rate: float) -> None:
        if cache_type not in CACHE_TYPES:
            raise ValueError(f"Unknown cache type: {cache_type}")
        self._metrics.cache_hit_rates[cache_type] = hit_rate

    def get_performance_report(self) -> dict[str, Any]:
        """Summary, detailed windows, active alerts and recommendations."""
        metrics = self._metrics
        uptime_hours = (self._clock() - self._start_time) / 3600

        summary = {
            "uptime": f"{uptime_hours:.2f} hours",
            "avg_memory_processing": average(metrics.memory_processing_time),
            "avg_prompt_generation": average(metrics.system_prompt_generation_time),
            "deduplication_hit_rate": metrics.deduplication_hit_rate,
            "avg_chat_response_impact": average(metrics.chat_response_time_impact),
            "total_circuit_breaker_trips": metrics.circuit_breaker_trips,
            "status": self.get_overall_status(),
        }

        detailed = {
            "processing_times": {
                "memory": self._window_detail(metrics.memory_processing_time),
                "prompts": self._window_detail(metrics.system_prompt_generation_time),
            },
            "error_rates": dict(metrics.errors),
            "queue_metrics": {
                "current_size": metrics.queue_current_size,
                "max_size": metrics.queue_max_size,
                "processing_rate": metrics.queue_processing_rate,
            },
            "cache_performance": {t: metrics.cache_hit_rates.get(t, 0.0) for t in CACHE_TYPES},
        }

        return {
            "summary": summary,
            "detailed": detailed,
            "alerts": self.get_active_alerts(),
            "recommendations": self._generate_recommendations(),
        }

    def get_active_alerts(self) -> list[str]:
        """Conditions currently above threshold, as readable strings."""
        metrics = self._metrics
        alerts = []

        avg_memory = average(metrics.memory_processing_time)
        if avg_memory > self.thresholds.memory_processing_ms:
            alerts.append(f"Memory processing time above threshold: {avg_memory:.2f}ms")

        avg_impact = average(metrics.chat_response_time_impact)
        if avg_impact > self.thresholds.chat_response_increase_pct:
            alerts.append(f"Chat response time impact above threshold: {avg_impact:.2f}%")

        if metrics.queue_current_size > self.thresholds.queue_size:
            alerts.append(f"Queue size exceeded: {metrics.queue_current_size} items")

        return alerts

    def get_overall_status(self) -> str:
        alerts = self.get_active_alerts()
        if not alerts:
            return "healthy"
        if len(alerts) <= 2:
            return "warning"
        return "critical"

    def reset_metrics(self) -> None:
        """Drop all samples, counters and recent alerts."""
        self._metrics = _Metrics()
        self._alerts.clear()
        self._start_time = self._clock()

    def _window_detail(self, window: deque) -> dict[str, float]:
        return {
            "avg": average(window),
            "p95": percentile(window, 95),
            "p99": percentile(window, 99),
            "samples": len(window),
        }

    def _trigger_alert(self, alert_type: str, **data: Any) -> None:
        self._alerts.append(Alert(type=alert_type, data=data, timestamp=self._clock()))
        logger.warning("ALERT %s: %s", alert_type, data)
        if self.event_log is not None:
            try:
                self.event_log.log_alert(alert_type, **data)
            except OSError as e:
                logger.warning("Failed to write alert %s to event log: %s", alert_type, e)

    def _generate_recommendations(self) -> list[str]:
        metrics = self._metrics
        recommendations = []

        if average(metrics.memory_processing_time) > 50:
            recommendations.append("Consider enabling the memory accelerator for memory processing")

        if metrics.deduplication_hit_rate < 10:
            recommendations.append("Deduplication hit rate is low - review semantic hashing")

        # Only caches that have reported count toward the average.
        if metrics.cache_hit_rates and average(metrics.cache_hit_rates.values()) < 50:
            recommendations.append("Cache hit rates are low - consider increasing cache TTL or size")

        if metrics.circuit_breaker_trips > 10:
            recommendations.append("High number of circuit breaker trips - investigate error patterns")

        return recommendations
