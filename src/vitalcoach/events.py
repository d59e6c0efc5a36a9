"""JSONL event log for operational observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class EventEntry:
    """A single structured event."""

    timestamp: str
    event: str
    user_id: int | None = None
    operation: str | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {}}


class EventLog:
    """Writes structured events in JSONL format with size-based rotation."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".vitalcoach" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: EventEntry) -> None:
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), default=str) + "\n")

    def log(
        self,
        event: str,
        *,
        user_id: int | None = None,
        operation: str | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = EventEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            user_id=user_id,
            operation=operation,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_alert(self, alert_type: str, **data: Any) -> None:
        """Log a threshold alert from the performance monitor."""
        self.log("alert", operation=alert_type, **data)

    def log_file_deleted(self, file_name: str, tier: str, age_days: int, size: int) -> None:
        """Log an attachment removed by the retention sweep."""
        self.log(
            "attachment_deleted",
            operation="retention_sweep",
            file_name=file_name,
            tier=tier,
            age_days=age_days,
            size=size,
        )

    def log_request_failure(
        self,
        endpoint: str,
        error: str,
        *,
        attempts: int,
        duration_ms: float | None = None,
    ) -> None:
        """Log an accelerator request that exhausted its retries."""
        self.log(
            "accelerator_failure",
            operation=endpoint,
            error=error,
            duration_ms=duration_ms,
            attempts=attempts,
        )


# Global event log instance
_event_log: EventLog | None = None


def get_event_log() -> EventLog:
    """Get the global event log instance."""
    global _event_log
    if _event_log is None:
        _event_log = EventLog()
    return _event_log


def configure_event_log(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> EventLog:
    """Configure and return the global event log."""
    global _event_log
    _event_log = EventLog(log_dir=log_dir, max_size_mb=max_size_mb)
    return _event_log
