"""Memory module: deduplicated storage and cached retrieval of user facts."""

from .detection import MemoryDetection, detect_memory_worthy
from .hashing import semantic_hash, short_hash
from .models import MemoryCategory, MemoryEntry
from .service import DedupResult, DedupStatus, MemoryService
from .store import MemoryStore

__all__ = [
    "DedupResult",
    "DedupStatus",
    "MemoryCategory",
    "MemoryDetection",
    "MemoryEntry",
    "MemoryService",
    "MemoryStore",
    "detect_memory_worthy",
    "semantic_hash",
    "short_hash",
]
