"""SQLite storage for health records."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Sequence

from .models import HealthRecord


def _format_ts(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="microseconds")


class HealthStore:
    """Persistent storage for time-series health records using SQLite."""

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
        """Create the health_data table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS health_data (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id     INTEGER NOT NULL,
                category    TEXT NOT NULL DEFAULT 'general',
                data_type   TEXT NOT NULL,
                value       TEXT NOT NULL,
                unit        TEXT,
                source      TEXT,
                metadata    TEXT NOT NULL DEFAULT '{}',
                timestamp   TEXT NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_health_user_ts "
            "ON health_data(user_id, category, timestamp)"
        )
        conn.commit()

    def add_record(self, record: HealthRecord) -> HealthRecord:
        """Insert a record and return it with its id."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO health_data (user_id, category, data_type, value, unit, source, metadata, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                record.user_id,
                record.category,
                record.data_type,
                record.value,
                record.unit,
                record.source,
                json.dumps(record.metadata or {}),
                _format_ts(record.timestamp),
            ),
        )
        row = cursor.fetchone()
        conn.commit()
        return HealthRecord(
            id=row["id"],
            user_id=record.user_id,
            data_type=record.data_type,
            value=record.value,
            timestamp=record.timestamp,
            category=record.category,
            unit=record.unit,
            source=record.source,
            metadata=dict(record.metadata or {}),
        )

    def get_records(
        self,
        user_id: int,
        *,
        category: str | None = None,
        data_types: Sequence[str] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        newest_first: bool = True,
        limit: int | None = None,
    ) -> list[HealthRecord]:
        """Query records by equality filters and an inclusive time range.

        Args:
            user_id: Owner of the records.
            category: Only this category, if given.
            data_types: Only these data types, if given.
            start: Earliest timestamp (inclusive).
            end: Latest timestamp (inclusive).
            newest_first: Order by timestamp descending when True.
            limit: Maximum rows to return.

        Returns:
            Matching records.
        """
        clauses = ["user_id = ?"]
        params: list = [user_id]
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if data_types:
            clauses.append(f"data_type IN ({', '.join('?' for _ in data_types)})")
            params.extend(data_types)
        if start is not None:
            clauses.append("timestamp >= ?")
            params.append(_format_ts(start))
        if end is not None:
            clauses.append("timestamp <= ?")
            params.append(_format_ts(end))

        query = f"SELECT * FROM health_data WHERE {' AND '.join(clauses)}"
        query += f" ORDER BY timestamp {'DESC' if newest_first else 'ASC'}, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        cursor = conn.execute(query, params)
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def update_value(self, record_id: int, value: str) -> bool:
        """Replace a record's value. Returns True if a row changed."""
        conn = self._get_connection()
        cursor = conn.execute(
            "UPDATE health_data SET value = ? WHERE id = ?",
            (value, record_id),
        )
        conn.commit()
        return cursor.rowcount > 0

    def delete(self, record_id: int) -> bool:
        """Delete a record by id."""
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM health_data WHERE id = ?", (record_id,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_record(self, row: sqlite3.Row) -> HealthRecord:
        """Convert a database row to a HealthRecord."""
        try:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
        except json.JSONDecodeError:
            metadata = {}
        return HealthRecord(
            id=row["id"],
            user_id=row["user_id"],
            category=row["category"],
            data_type=row["data_type"],
            value=row["value"],
            unit=row["unit"],
            source=row["source"],
            metadata=metadata if isinstance(metadata, dict) else {},
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )
