"""Pattern-based detection of memory-worthy messages.

No model calls: messages are matched against ordered keyword tables and
the first matching category wins.
"""

import re
from dataclasses import dataclass

from .models import MemoryCategory

# Order is priority.
MEMORY_PATTERNS: tuple[tuple[MemoryCategory, tuple[str, ...]], ...] = (
    (MemoryCategory.GOALS, ("want to", "goal is", "trying to", "hope to", "plan to")),
    (MemoryCategory.PREFERENCES, ("prefer", "like", "love", "hate", "dislike", "enjoy")),
    (MemoryCategory.CONSTRAINTS, ("cannot", "can't", "allergic", "avoid", "restrict")),
    (MemoryCategory.HEALTH, ("weight", "exercise", "workout", "diet", "calories", "steps")),
)

CATEGORY_IMPORTANCE: dict[MemoryCategory, float] = {
    MemoryCategory.GOALS: 0.9,
    MemoryCategory.CONSTRAINTS: 0.8,
    MemoryCategory.PREFERENCES: 0.6,
    MemoryCategory.HEALTH: 0.6,
}

DEFAULT_IMPORTANCE = 0.3
MAX_KEYWORDS = 5

_NON_WORD = re.compile(r"[^\w]")


@dataclass(frozen=True)
class MemoryDetection:
    """Outcome of classifying a message."""

    should_remember: bool
    category: MemoryCategory
    importance: float
    extracted_info: str
    keywords: tuple[str, ...]


def classify_text(text: str) -> MemoryCategory | None:
    """Return the first category whose keywords appear in ``text``."""
    lowered = text.lower()
    for category, patterns in MEMORY_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return category
    return None


def extract_keywords(message: str, limit: int = MAX_KEYWORDS) -> tuple[str, ...]:
    """Unique lowercase words longer than three characters, in message order."""
    seen: dict[str, None] = {}
    for word in message.split():
        if len(word) <= 3:
            continue
        cleaned = _NON_WORD.sub("", word.lower())
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)[:limit]


def detect_memory_worthy(message: str) -> MemoryDetection:
    """Decide whether a chat message holds something worth remembering."""
    category = classify_text(message)

    if category is None:
        return MemoryDetection(
            should_remember=False,
            category=MemoryCategory.CONTEXT,
            importance=DEFAULT_IMPORTANCE,
            extracted_info=message.strip(),
            keywords=extract_keywords(message),
        )

    return MemoryDetection(
        should_remember=True,
        category=category,
        importance=CATEGORY_IMPORTANCE[category],
        extracted_info=message.strip(),
        keywords=extract_keywords(message),
    )
