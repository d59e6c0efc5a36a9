"""SQLite storage for conversation messages."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Iterator

from ..attachments import AttachmentRef, MessageAttachments
from .models import ChatMessage

logger = logging.getLogger(__name__)


class MessageStore:
    """Persistent storage for conversation messages and their attachments."""

    def __init__(self, db_path: Path) -> None:
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
        """Create the conversation_messages table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS conversation_messages (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id  TEXT NOT NULL,
                user_id          INTEGER,
                role             TEXT NOT NULL,
                content          TEXT NOT NULL,
                metadata         TEXT NOT NULL DEFAULT '{}',
                created_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
            "ON conversation_messages(conversation_id)"
        )
        conn.commit()

    def add_message(self, message: ChatMessage) -> ChatMessage:
        """Insert a message and return it with its id."""
        metadata = {"attachments": [a.to_dict() for a in message.attachments]} if message.attachments else {}
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO conversation_messages (conversation_id, user_id, role, content, metadata)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id, created_at
            """,
            (message.conversation_id, message.user_id, message.role, message.content, json.dumps(metadata)),
        )
        row = cursor.fetchone()
        conn.commit()
        return ChatMessage(
            id=row["id"],
            conversation_id=message.conversation_id,
            user_id=message.user_id,
            role=message.role,
            content=message.content,
            attachments=message.attachments,
            created_at=row["created_at"],
        )

    def get_user_history(self, user_id: int, limit: int = 50) -> list[ChatMessage]:
        """Most recent messages across all of a user's conversations, oldest first."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT * FROM (
                SELECT * FROM conversation_messages
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
            ) ORDER BY id ASC
            """,
            (user_id, limit),
        )
        return [self._row_to_message(row) for row in cursor.fetchall()]

    def get_conversation(self, conversation_id: str) -> list[ChatMessage]:
        """All messages of one conversation in insertion order."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM conversation_messages WHERE conversation_id = ? ORDER BY id",
            (conversation_id,),
        )
        return [self._row_to_message(row) for row in cursor.fetchall()]

    def iter_message_attachments(self) -> Iterator[MessageAttachments]:
        """Yield every message that references attachments."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM conversation_messages WHERE metadata LIKE '%attachments%'"
        )
        for row in cursor:
            message = self._row_to_message(row)
            if message.attachments:
                yield MessageAttachments(content=message.content, attachments=message.attachments)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_message(self, row: sqlite3.Row) -> ChatMessage:
        """Convert a database row to a ChatMessage, skipping malformed attachments."""
        try:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
        except json.JSONDecodeError:
            logger.warning("Message %s has unreadable metadata", row["id"])
            metadata = {}

        raw = metadata.get("attachments") if isinstance(metadata, dict) else None
        attachments = []
        for item in raw if isinstance(raw, list) else []:
            ref = AttachmentRef.from_dict(item)
            if ref is not None:
                attachments.append(ref)

        return ChatMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            user_id=row["user_id"],
            role=row["role"],
            content=row["content"],
            attachments=tuple(attachments),
            created_at=row["created_at"],
        )
