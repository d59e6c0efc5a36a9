"""Memory orchestration: deduplicated saving and cached contextual retrieval."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Sequence

from ..cache import TTLCache
from ..result import Outcome
from .detection import detect_memory_worthy
from .hashing import dedup_fragment, embed_hash, semantic_hash, short_hash
from .models import MemoryEntry
from .store import MemoryStore

if TYPE_CHECKING:
    from ..accelerator import AcceleratorClient
    from ..monitoring import PerformanceMonitor

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI wellness coach."
CONTEXT_MEMORY_LIMIT = 5
PROMPT_MEMORY_LIMIT = 4
QUERY_KEY_CHARS = 50
MEMORY_CACHE_TTL = 300.0
RETRIEVAL_CACHE_TYPE = "memory_retrieval_cache"

_MISSING = object()


class DedupStatus(str, Enum):
    """What happened to a processed message."""

    DUPLICATE = "duplicate"
    SAVED = "saved"
    IGNORED = "ignored"


@dataclass(frozen=True)
class DedupResult:
    status: DedupStatus
    semantic_hash: str
    entry: MemoryEntry | None = None


def memory_cache_prefix(user_id: int) -> str:
    return f"memories:{user_id}:"


def memory_cache_key(user_id: int, query: str) -> str:
    """Cache key for a user's retrieval, keyed on the start of the query."""
    return f"{memory_cache_prefix(user_id)}{short_hash(query[:QUERY_KEY_CHARS])}"


class MemoryService:
    """Coordinates the store, the retrieval cache and the optional accelerator.

    Nothing here raises to the caller: store failures are logged and turn
    into degraded Outcomes. A failed duplicate lookup skips the save, so a
    memory may be lost but never silently duplicated.
    """

    def __init__(
        self,
        store: MemoryStore,
        cache: TTLCache | None = None,
        monitor: PerformanceMonitor | None = None,
        accelerator: AcceleratorClient | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the service.

        Args:
            store: Persistence for memory entries.
            cache: Retrieval cache. A five-minute TTLCache if None.
            monitor: Optional performance monitor to report timings to.
            accelerator: Optional remote accelerator client.
            timer: Clock used for timing measurements.
        """
        self.store = store
        self.cache = cache if cache is not None else TTLCache(MEMORY_CACHE_TTL)
        self.monitor = monitor
        self.accelerator = accelerator
        self._timer = timer

    def _elapsed_ms(self, started: float) -> float:
        return (self._timer() - started) * 1000

    def _report(self, track: Callable[..., None], *args, **kwargs) -> None:
        """Forward a measurement to the monitor; failures are only logged."""
        try:
            track(*args, **kwargs)
        except Exception as e:
            logger.warning(
                "Failed to report %s to monitor: %s", getattr(track, "__name__", track), e
            )

    def process_with_deduplication(
        self, user_id: int, message: str, conversation_id: str
    ) -> Outcome[DedupResult]:
        """Remember a chat message unless it duplicates an existing memory.

        Args:
            user_id: Owner of the conversation.
            message: Raw user message.
            conversation_id: Conversation the message belongs to.

        Returns:
            Outcome wrapping a DedupResult; degraded if the store failed.
        """
        started = self._timer()
        hash_value = semantic_hash(message)
        error: Exception | None = None
        is_duplicate = False
        result: DedupResult

        try:
            is_duplicate = bool(
                self.store.find_active_containing(user_id, dedup_fragment(hash_value))
            )
        except Exception as e:
            logger.error("Duplicate check failed for user %s: %s", user_id, e)
            error = e

        if error is not None:
            result = DedupResult(DedupStatus.IGNORED, hash_value)
        elif is_duplicate:
            result = DedupResult(DedupStatus.DUPLICATE, hash_value)
        else:
            detection = detect_memory_worthy(message)
            if not detection.should_remember:
                result = DedupResult(DedupStatus.IGNORED, hash_value)
            else:
                try:
                    saved = self.store.save_entry(
                        MemoryEntry(
                            user_id=user_id,
                            content=embed_hash(detection.extracted_info, hash_value),
                            category=detection.category,
                            importance_score=detection.importance,
                            keywords=detection.keywords,
                            source_conversation_id=conversation_id,
                        )
                    )
                    self.invalidate_user_cache(user_id)
                    result = DedupResult(DedupStatus.SAVED, hash_value, saved)
                except Exception as e:
                    logger.error("Failed to save memory for user %s: %s", user_id, e)
                    error = e
                    result = DedupResult(DedupStatus.IGNORED, hash_value)

        elapsed = self._elapsed_ms(started)
        logger.debug("Processed deduplication in %.1fms (%s)", elapsed, result.status.value)
        if self.monitor is not None:
            self._report(
                self.monitor.track_deduplication, is_duplicate, elapsed, success=error is None
            )
            self._report(self.monitor.track_memory_processing, elapsed, success=error is None)

        if error is not None:
            return Outcome.fallback(result, error, duration_ms=elapsed)
        return Outcome.success(result, duration_ms=elapsed)

    def get_contextual_memories(self, user_id: int, query: str) -> Outcome[list[MemoryEntry]]:
        """Fetch the user's top memories, memoized per query prefix.

        No similarity is computed here: memories are ranked by importance
        then recency. Failed lookups return an empty list and are not cached.
        """
        key = memory_cache_key(user_id, query)
        cached = self.cache.get(key, _MISSING)
        self._report_cache_hit_rate()
        if cached is not _MISSING:
            return Outcome.success(cached, cache_hit=True)

        try:
            memories = self.store.get_active(user_id, limit=CONTEXT_MEMORY_LIMIT)
        except Exception as e:
            logger.error("Memory retrieval failed for user %s: %s", user_id, e)
            return Outcome.fallback([], e, cache_hit=False)

        self.cache.set(key, memories)
        return Outcome.success(memories, cache_hit=False)

    async def find_relevant_memories(
        self,
        user_id: int,
        query: str,
        context_embedding: Sequence[float],
        similarity_threshold: float = 0.7,
        max_results: int = 8,
    ) -> Outcome[list[MemoryEntry]]:
        """Rank memories by embedding similarity when the accelerator is up.

        Falls back to get_contextual_memories when the accelerator is absent,
        unavailable, or fails.
        """
        if self.accelerator is None or not self.accelerator.is_available():
            outcome = self.get_contextual_memories(user_id, query)
            outcome.metadata = {**(outcome.metadata or {}), "source": "local"}
            return outcome

        try:
            candidates = [m for m in self.store.get_active(user_id) if m.embedding is not None]
            ranked = await self.accelerator.get_contextual_memories(
                user_id,
                context_embedding,
                candidates,
                similarity_threshold=similarity_threshold,
                max_results=max_results,
            )
        except Exception as e:
            logger.warning("Accelerator retrieval failed, using local ranking: %s", e)
            fallback = self.get_contextual_memories(user_id, query)
            return Outcome.fallback(fallback.value, e, source="local")

        by_id = {m.id: m for m in candidates}
        memories = [by_id[r.id] for r in ranked if r.id in by_id]
        return Outcome.success(memories, source="accelerator")

    def format_for_prompt(self, memories: Sequence[MemoryEntry]) -> str:
        """Render up to four memories as a bullet list."""
        return "\n".join(f"- {memory.text}" for memory in memories[:PROMPT_MEMORY_LIMIT])

    def build_enhanced_system_prompt(
        self, user_id: int, current_message: str, base_prompt: str = DEFAULT_SYSTEM_PROMPT
    ) -> Outcome[str]:
        """Coach system prompt enriched with remembered context.

        Args:
            user_id: Whose memories to include.
            current_message: Message being answered, used for the cache key.
            base_prompt: Persona text the memories are appended to.
        """
        started = self._timer()
        retrieval = self.get_contextual_memories(user_id, current_message)

        if not retrieval.value:
            prompt = base_prompt
        else:
            prompt = (
                f"{base_prompt} Consider this context about the user:\n\n"
                f"{self.format_for_prompt(retrieval.value)}\n\n"
                "Use this information naturally in your responses without explicitly "
                "mentioning you're using remembered information."
            )

        elapsed = self._elapsed_ms(started)
        if self.monitor is not None:
            self._report(self.monitor.track_system_prompt_generation, elapsed, success=retrieval.ok)

        if retrieval.degraded:
            return Outcome.fallback(prompt, retrieval.error or "memory retrieval failed")
        return Outcome.success(prompt, duration_ms=elapsed)

    def deactivate_memory(self, user_id: int, entry_id: int) -> Outcome[bool]:
        """Deactivate one of the user's memories and drop cached retrievals."""
        try:
            entry = self.store.get(entry_id)
            if entry is None or entry.user_id != user_id:
                return Outcome.success(False)
            deactivated = self.store.deactivate(entry_id)
        except Exception as e:
            logger.error("Failed to deactivate memory %s: %s", entry_id, e)
            return Outcome.fallback(False, e)

        self.invalidate_user_cache(user_id)
        return Outcome.success(deactivated)

    def _report_cache_hit_rate(self) -> None:
        if self.monitor is not None:
            self._report(
                self.monitor.track_cache_performance,
                RETRIEVAL_CACHE_TYPE,
                self.cache.stats().hit_rate,
            )

    def invalidate_user_cache(self, user_id: int) -> int:
        return self.cache.invalidate_pattern(memory_cache_prefix(user_id))
