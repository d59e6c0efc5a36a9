"""SQLite storage for memory entries."""

import json
import sqlite3
from pathlib import Path

from .models import MemoryCategory, MemoryEntry


class MemoryStore:
    """Persistent storage for memory entries using SQLite.

    Only equality filters, substring containment, ordering and limits are
    used; no multi-statement transactions.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the memory_entries table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS memory_entries (
                id                      INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id                 INTEGER NOT NULL,
                content                 TEXT NOT NULL,
                category                TEXT NOT NULL DEFAULT 'context',
                importance_score        REAL NOT NULL DEFAULT 0.5,
                keywords                TEXT NOT NULL DEFAULT '[]',
                source_conversation_id  TEXT,
                embedding               TEXT,
                is_active               INTEGER NOT NULL DEFAULT 1,
                created_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_memory_user_active "
            "ON memory_entries(user_id, is_active)"
        )
        conn.commit()

    def save_entry(self, entry: MemoryEntry) -> MemoryEntry:
        """Insert a memory entry.

        Args:
            entry: The entry to save.

        Returns:
            The entry with its assigned id and created_at.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO memory_entries (
                user_id, content, category, importance_score, keywords,
                source_conversation_id, embedding, is_active
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id, created_at
            """,
            (
                entry.user_id,
                entry.content,
                MemoryCategory(entry.category).value,
                entry.importance_score,
                json.dumps(list(entry.keywords)),
                entry.source_conversation_id,
                json.dumps(list(entry.embedding)) if entry.embedding is not None else None,
                int(entry.is_active),
            ),
        )
        row = cursor.fetchone()
        conn.commit()
        return MemoryEntry(
            id=row["id"],
            user_id=entry.user_id,
            content=entry.content,
            category=MemoryCategory(entry.category),
            importance_score=entry.importance_score,
            keywords=tuple(entry.keywords),
            source_conversation_id=entry.source_conversation_id,
            embedding=entry.embedding,
            is_active=entry.is_active,
            created_at=row["created_at"],
        )

    def find_active_containing(self, user_id: int, fragment: str, limit: int = 1) -> list[int]:
        """Return ids of active entries whose content contains ``fragment``.

        Matching is case-insensitive substring containment.

        Args:
            user_id: Owner to search.
            fragment: Text to look for.
            limit: Maximum number of ids to return.

        Returns:
            Matching entry ids.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT id FROM memory_entries
            WHERE user_id = ? AND is_active = 1
              AND instr(lower(content), lower(?)) > 0
            LIMIT ?
            """,
            (user_id, fragment, limit),
        )
        return [row["id"] for row in cursor.fetchall()]

    def get_active(self, user_id: int, limit: int | None = None) -> list[MemoryEntry]:
        """Get a user's active entries, most important and most recent first.

        Args:
            user_id: Owner of the entries.
            limit: Maximum number of entries, or None for all.

        Returns:
            Ordered list of active entries.
        """
        conn = self._get_connection()
        query = """
            SELECT * FROM memory_entries
            WHERE user_id = ? AND is_active = 1
            ORDER BY importance_score DESC, created_at DESC, id DESC
        """
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)
        cursor = conn.execute(query, params)
        return [self._row_to_entry(row) for row in cursor.fetchall()]

    def get(self, entry_id: int) -> MemoryEntry | None:
        """Get a single entry by id, active or not."""
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM memory_entries WHERE id = ?", (entry_id,))
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def deactivate(self, entry_id: int) -> bool:
        """Mark an entry inactive.

        Returns:
            True if an active entry was deactivated, False otherwise.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            "UPDATE memory_entries SET is_active = 0 WHERE id = ? AND is_active = 1",
            (entry_id,),
        )
        conn.commit()
        return cursor.rowcount > 0

    def count_active(self, user_id: int) -> int:
        """Number of active entries for a user."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT COUNT(*) AS n FROM memory_entries WHERE user_id = ? AND is_active = 1",
            (user_id,),
        )
        return cursor.fetchone()["n"]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_entry(self, row: sqlite3.Row) -> MemoryEntry:
        """Convert a database row to a MemoryEntry."""
        embedding = json.loads(row["embedding"]) if row["embedding"] else None
        return MemoryEntry(
            id=row["id"],
            user_id=row["user_id"],
            content=row["content"],
            category=MemoryCategory(row["category"]),
            importance_score=row["importance_score"],
            keywords=tuple(json.loads(row["keywords"])),
            source_conversation_id=row["source_conversation_id"],
            embedding=tuple(embedding) if embedding is not None else None,
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )
