"""HTTP client for the optional remote memory accelerator.

The accelerator offers vector similarity and contextual memory ranking.
It may be absent entirely, so every caller keeps a local fallback path.
"""

import asyncio
import dataclasses
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

import httpx

from ..config import AcceleratorConfig
from ..events import EventLog
from ..memory.models import MemoryEntry
from ..monitoring import MetricSummary, summarize

logger = logging.getLogger(__name__)

METRIC_WINDOW = 100


class AcceleratorError(Exception):
    """A request to the accelerator failed."""


class AcceleratorUnavailableError(AcceleratorError):
    """The accelerator is disabled or not recently healthy."""


class AcceleratorTimeoutError(AcceleratorError):
    """A request exceeded its timeout and was cancelled."""


class HealthState(str, Enum):
    """Health of the accelerator as last observed."""

    DISABLED = "disabled"
    CHECKING = "checking"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class RelevantMemory:
    """A memory ranked by the accelerator."""

    id: int | None
    content: str
    relevance_score: float
    retrieval_reason: str
    raw: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RelevantMemory":
        return cls(
            id=data.get("id"),
            content=str(data.get("content", "")),
            relevance_score=float(data.get("relevanceScore", 0.0)),
            retrieval_reason=str(data.get("retrievalReason", "")),
            raw=data,
        )


def memory_to_payload(entry: MemoryEntry) -> dict[str, Any]:
    """Serialize a memory entry for the accelerator's JSON contract."""
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "content": entry.text,
        "category": entry.category.value,
        "importanceScore": entry.importance_score,
        "keywords": list(entry.keywords),
        "embedding": list(entry.embedding) if entry.embedding is not None else None,
        "isActive": entry.is_active,
        "createdAt": entry.created_at,
    }


class AcceleratorClient:
    """Client for the accelerator's HTTP API.

    Requests are only sent while the client is enabled and the last health
    check succeeded less than ``stale_after`` seconds ago.
    """

    def __init__(
        self,
        config: AcceleratorConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_log: EventLog | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings. Defaults to a disabled config.
            http_client: Optional httpx client (tests pass a MockTransport).
            clock: Monotonic time source in seconds.
            sleep: Async sleep used between retries.
            event_log: Optional structured log for exhausted requests.
        """
        self.config = config or AcceleratorConfig()
        self._http = http_client
        self._owns_http = http_client is None
        self._clock = clock
        self._sleep = sleep
        self.event_log = event_log
        self._healthy = False
        self._checking = False
        self._last_health_check: float | None = None
        self._metrics: dict[str, deque[float]] = {}
        self._monitor_task: asyncio.Task | None = None

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    @property
    def state(self) -> HealthState:
        """Current health state, treating stale results as unhealthy.

        CHECKING is only reported for the first probe; re-checks keep the
        previous result until they finish.
        """
        if not self.config.enabled:
            return HealthState.DISABLED
        if self._checking and self._last_health_check is None:
            return HealthState.CHECKING
        if self._healthy and not self._is_stale():
            return HealthState.HEALTHY
        return HealthState.UNHEALTHY

    def _is_stale(self) -> bool:
        if self._last_health_check is None:
            return True
        return (self._clock() - self._last_health_check) >= self.config.stale_after

    def is_available(self) -> bool:
        """True when enabled and recently healthy."""
        return self.state is HealthState.HEALTHY

    async def check_health(self) -> bool:
        """Probe GET /health and record the result."""
        if not self.config.enabled:
            return False

        self._checking = True
        try:
            response = await self._get_http().get(
                f"{self.config.base_url}/health",
                timeout=self.config.health_check_timeout,
            )
            self._healthy = response.is_success
            if not self._healthy:
                logger.warning("Accelerator health check failed: HTTP %s", response.status_code)
        except httpx.HTTPError as e:
            self._healthy = False
            logger.warning("Accelerator health check error: %s", e)
        finally:
            self._checking = False
            self._last_health_check = self._clock()

        return self._healthy

    async def _health_loop(self) -> None:
        """Background task for periodic health checks."""
        while True:
            try:
                await self.check_health()
                await asyncio.sleep(self.config.health_check_interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Accelerator health loop iteration failed")
                await asyncio.sleep(self.config.health_check_interval)

    def start_health_monitoring(self) -> None:
        """Start the periodic health check task if enabled."""
        if not self.config.enabled:
            return
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self._health_loop())

    def stop_health_monitoring(self) -> None:
        """Stop the periodic health check task."""
        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()

    async def make_request(
        self,
        endpoint: str,
        method: str = "GET",
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Send a JSON request with bounded retries.

        Timeouts are not retried. Non-2xx responses, transport errors and
        undecodable bodies are retried with a fixed delay until the retry
        budget or the cumulative deadline runs out.

        Args:
            endpoint: Path starting with '/'.
            method: HTTP method.
            payload: JSON body, if any.

        Returns:
            The decoded JSON response.

        Raises:
            AcceleratorUnavailableError: Client disabled or not healthy.
            AcceleratorTimeoutError: The request timed out.
            AcceleratorError: All attempts failed.
        """
        if not self.is_available():
            raise AcceleratorUnavailableError("Memory accelerator is not available")

        config = self.config
        url = f"{config.base_url}{endpoint}"
        max_attempts = config.retries + 1
        started = self._clock()
        deadline = started + config.timeout * max_attempts + config.retry_delay * config.retries
        attempt = 0
        last_error: Exception | None = None

        while attempt < max_attempts:
            attempt += 1
            try:
                response = await self._get_http().request(
                    method,
                    url,
                    json=payload,
                    timeout=config.timeout,
                )
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as e:
                raise AcceleratorTimeoutError(
                    f"{method} {endpoint} timed out after {config.timeout}s"
                ) from e
            except (httpx.HTTPError, ValueError) as e:
                last_error = e

            remaining = max_attempts - attempt
            if remaining == 0 or self._clock() + config.retry_delay >= deadline:
                break
            logger.warning(
                "Accelerator request %s failed (%s), retrying (%d attempts left)",
                endpoint,
                last_error,
                remaining,
            )
            await self._sleep(config.retry_delay)

        duration_ms = (self._clock() - started) * 1000
        if self.event_log is not None:
            self.event_log.log_request_failure(
                endpoint, str(last_error), attempts=attempt, duration_ms=duration_ms
            )
        raise AcceleratorError(f"{method} {endpoint} failed after {attempt} attempts: {last_error}")

    def _record_metric(self, operation: str, started: float) -> None:
        window = self._metrics.setdefault(operation, deque(maxlen=METRIC_WINDOW))
        window.append((self._clock() - started) * 1000)

    async def calculate_cosine_similarity(
        self, vector_a: Sequence[float], vector_b: Sequence[float]
    ) -> float:
        started = self._clock()
        data = await self.make_request(
            "/api/memory/similarity",
            "POST",
            {"vectorA": list(vector_a), "vectorB": list(vector_b)},
        )
        self._record_metric("similarity_calculation", started)
        return float(data["similarity"])

    async def calculate_batch_similarity(
        self, base_vector: Sequence[float], vectors: Sequence[Sequence[float]]
    ) -> list[float]:
        started = self._clock()
        data = await self.make_request(
            "/api/memory/batch-similarity",
            "POST",
            {"baseVector": list(base_vector), "vectors": [list(v) for v in vectors]},
        )
        self._record_metric("batch_similarity_calculation", started)
        return [float(score) for score in data["results"]]

    async def get_contextual_memories(
        self,
        user_id: int,
        context_embedding: Sequence[float],
        user_memories: Sequence[MemoryEntry],
        similarity_threshold: float = 0.7,
        max_results: int = 8,
    ) -> list[RelevantMemory]:
        """Rank a user's memories against a context embedding remotely."""
        started = self._clock()
        data = await self.make_request(
            "/api/memory/contextual",
            "POST",
            {
                "userId": user_id,
                "contextEmbedding": list(context_embedding),
                "userMemories": [memory_to_payload(m) for m in user_memories],
                "similarityThreshold": similarity_threshold,
                "maxResults": max_results,
            },
        )
        self._record_metric("contextual_memory_retrieval", started)
        return [RelevantMemory.from_dict(item) for item in data or []]

    async def add_background_task(
        self, task_type: str, payload: dict[str, Any], priority: int = 1
    ) -> None:
        """Queue a processing task on the accelerator."""
        await self.make_request(
            "/api/memory/process",
            "POST",
            {"type": task_type, "priority": priority, "payload": payload},
        )

    async def get_stats(self) -> dict[str, Any]:
        """Fetch the accelerator's own statistics."""
        return await self.make_request("/api/memory/stats")

    def get_performance_metrics(self) -> dict[str, MetricSummary]:
        """Latency summary per operation over the last 100 calls."""
        metrics = {}
        for operation, window in self._metrics.items():
            summary = summarize(window)
            if summary is not None:
                metrics[operation] = summary
        return metrics

    async def set_enabled(self, enabled: bool) -> None:
        """Enable or disable the client, probing health when enabling."""
        self.config = dataclasses.replace(self.config, enabled=enabled)
        if enabled and not self._healthy:
            await self.check_health()

    def get_config(self) -> AcceleratorConfig:
        return dataclasses.replace(self.config)

    def update_config(self, **updates: Any) -> None:
        """Replace individual configuration fields."""
        self.config = dataclasses.replace(self.config, **updates)

    async def aclose(self) -> None:
        """Stop monitoring and close the owned HTTP client."""
        self.stop_health_monitoring()
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
