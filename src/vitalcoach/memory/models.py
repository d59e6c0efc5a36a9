"""Data models for the memory system."""

from dataclasses import dataclass, field
from enum import Enum

from .hashing import strip_hash


class MemoryCategory(str, Enum):
    """What kind of fact a memory holds."""

    GOALS = "goals"
    PREFERENCES = "preferences"
    CONSTRAINTS = "constraints"
    HEALTH = "health"
    CONTEXT = "context"


@dataclass(frozen=True)
class MemoryEntry:
    """A remembered fact about the user.

    Attributes:
        user_id: Owner of the memory.
        content: Stored text, possibly carrying an embedded semantic hash.
        category: MemoryCategory of the fact.
        importance_score: 0-1 ranking weight for retrieval.
        keywords: Significant words from the source message.
        id: Database ID, None for new entries.
        source_conversation_id: Conversation the memory was detected in.
        embedding: Optional vector used by the accelerator path.
        is_active: False once the memory has been deactivated.
        created_at: ISO timestamp when created.
    """

    user_id: int
    content: str
    category: MemoryCategory = MemoryCategory.CONTEXT
    importance_score: float = 0.5
    keywords: tuple[str, ...] = field(default_factory=tuple)
    id: int | None = None
    source_conversation_id: str | None = None
    embedding: tuple[float, ...] | None = None
    is_active: bool = True
    created_at: str | None = None

    @property
    def text(self) -> str:
        """Content without the embedded dedup marker."""
        return strip_hash(self.content)
