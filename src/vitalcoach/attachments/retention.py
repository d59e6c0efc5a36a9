"""Attachment classification and retention sweep.

Files are sorted into value tiers from their name, MIME type and the
surrounding message text. Each tier has a retention period; the sweep
removes files older than their tier allows.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from ..events import EventLog

logger = logging.getLogger(__name__)

KEEP_FOREVER = -1
SECONDS_PER_DAY = 86400


class RetentionTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class CategoryRule:
    """Keywords that map a file to a taxonomy category and tier."""

    name: str
    tier: RetentionTier
    reason: str
    filename_keywords: tuple[str, ...] = ()
    context_keywords: tuple[str, ...] = ()
    match_images: bool = False

    def matches(self, file_name: str, file_type: str, context: str) -> bool:
        if any(k in file_name for k in self.filename_keywords):
            return True
        if any(k in context for k in self.context_keywords):
            return True
        return self.match_images and file_type.startswith("image/")


# Order is priority: the first matching rule wins.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        name="Medical",
        tier=RetentionTier.HIGH,
        reason="Medical/health document detected",
        filename_keywords=("blood", "lab", "test", "report", "prescription", "medical"),
        context_keywords=("blood work", "lab result", "medical"),
    ),
    CategoryRule(
        name="Fitness",
        tier=RetentionTier.MEDIUM,
        reason="Fitness plan or routine document",
        filename_keywords=("plan", "routine", "workout", "fitness"),
        context_keywords=("nutrition plan", "exercise", "fitness"),
    ),
    CategoryRule(
        name="Financial",
        tier=RetentionTier.MEDIUM,
        reason="Financial document detected",
        filename_keywords=("receipt", "invoice", "tax", "financial"),
        context_keywords=("receipt", "invoice", "financial"),
    ),
    CategoryRule(
        name="Work",
        tier=RetentionTier.MEDIUM,
        reason="Work-related document",
        filename_keywords=("work", "project", "meeting", "presentation"),
        context_keywords=("work", "project", "meeting"),
    ),
    CategoryRule(
        name="Photo",
        tier=RetentionTier.LOW,
        reason="Photo or image file",
        context_keywords=("photo", "image"),
        match_images=True,
    ),
    CategoryRule(
        name="Personal",
        tier=RetentionTier.MEDIUM,
        reason="Personal document",
        filename_keywords=("personal", "diary", "journal"),
        context_keywords=("personal",),
    ),
)

DEFAULT_RULE = CategoryRule(
    name="General",
    tier=RetentionTier.LOW,
    reason="General document or file",
)


@dataclass(frozen=True)
class RetentionDurations:
    """Days to keep each tier; -1 keeps files forever."""

    high: int = KEEP_FOREVER
    medium: int = 90
    low: int = 30

    def for_tier(self, tier: RetentionTier) -> int:
        return {
            RetentionTier.HIGH: self.high,
            RetentionTier.MEDIUM: self.medium,
            RetentionTier.LOW: self.low,
        }[tier]


@dataclass(frozen=True)
class AttachmentClassification:
    category: RetentionTier
    retention_days: int
    reason: str
    suggested_category_id: str | None = None
    suggested_category_name: str | None = None


@dataclass(frozen=True)
class AttachmentRef:
    """Attachment metadata stored with a chat message."""

    file_name: str
    file_type: str = "application/octet-stream"
    display_name: str | None = None
    file_size: int | None = None
    url: str | None = None
    id: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.file_name

    @property
    def is_image(self) -> bool:
        return self.file_type.startswith("image/")

    @classmethod
    def from_dict(cls, data: Any) -> "AttachmentRef | None":
        """Build from loosely-shaped metadata; None if there is no file name."""
        if not isinstance(data, dict):
            return None
        file_name = data.get("fileName") or data.get("file_name")
        if not isinstance(file_name, str) or not file_name:
            return None
        file_type = data.get("fileType") or data.get("file_type")
        display_name = data.get("displayName") or data.get("display_name")
        size = data.get("fileSize", data.get("file_size"))
        return cls(
            file_name=file_name,
            file_type=file_type if isinstance(file_type, str) and file_type else "application/octet-stream",
            display_name=display_name if isinstance(display_name, str) else None,
            file_size=size if isinstance(size, int) else None,
            url=data.get("url") if isinstance(data.get("url"), str) else None,
            id=str(data["id"]) if data.get("id") is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "displayName": self.display_name,
            "fileSize": self.file_size,
            "url": self.url,
            "id": self.id,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class MessageAttachments:
    """Attachments referenced by one stored message, with its text."""

    content: str
    attachments: tuple[AttachmentRef, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SweepResult:
    deleted_files: int = 0
    freed_bytes: int = 0
    degraded: bool = False
    error: str | None = None


def match_category(file_name: str, file_type: str, context: str | None = None) -> CategoryRule:
    """Return the first rule matching the lowercased inputs."""
    lower_name = file_name.lower()
    lower_context = (context or "").lower()
    lower_type = (file_type or "").lower()
    for rule in CATEGORY_RULES:
        if rule.matches(lower_name, lower_type, lower_context):
            return rule
    return DEFAULT_RULE


def should_delete(age_days: int, retention_days: int) -> bool:
    """Delete strictly after the retention period; -1 never expires."""
    if retention_days == KEEP_FOREVER:
        return False
    return age_days > retention_days


class AttachmentRetentionService:
    """Classifies attachments and deletes expired files from the uploads dir."""

    def __init__(
        self,
        uploads_dir: Path,
        durations: RetentionDurations | None = None,
        category_ids: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.time,
        event_log: EventLog | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            uploads_dir: Directory containing uploaded files.
            durations: Per-tier retention periods.
            category_ids: Taxonomy category name -> id for suggestions.
            clock: Wall-clock time source, compared against file mtimes.
            event_log: Optional structured log for deletions.
        """
        self.uploads_dir = Path(uploads_dir)
        self._durations = durations or RetentionDurations()
        self.category_ids = dict(category_ids or {})
        self._clock = clock
        self.event_log = event_log

    def categorize_attachment(
        self, file_name: str, file_type: str, context: str | None = None
    ) -> AttachmentClassification:
        rule = match_category(file_name, file_type, context)
        return AttachmentClassification(
            category=rule.tier,
            retention_days=self._durations.for_tier(rule.tier),
            reason=rule.reason,
            suggested_category_id=self.category_ids.get(rule.name),
            suggested_category_name=rule.name,
        )

    def get_retention_info(
        self, file_name: str, file_type: str, context: str | None = None
    ) -> AttachmentClassification:
        return self.categorize_attachment(file_name, file_type, context)

    def update_retention_durations(self, **durations: int) -> None:
        """Override some tier durations, e.g. ``medium=60``."""
        for tier, days in durations.items():
            if days != KEEP_FOREVER and days < 0:
                raise ValueError(f"Invalid retention for {tier}: {days}")
        self._durations = replace(self._durations, **durations)

    def get_retention_durations(self) -> RetentionDurations:
        return self._durations

    def age_in_days(self, path: Path) -> int:
        """Whole days since the file was last modified."""
        age_seconds = self._clock() - path.stat().st_mtime
        return int(age_seconds // SECONDS_PER_DAY)

    def cleanup_expired_attachments(
        self, messages: Callable[[], Iterable[MessageAttachments]]
    ) -> SweepResult:
        """Delete files past their tier's retention period.

        Each file name is evaluated once per sweep even if several messages
        reference it. Per-file failures are logged and skipped; a failure to
        enumerate messages yields an empty, degraded result.

        Args:
            messages: Callable producing the messages to scan.

        Returns:
            SweepResult with deleted file count and bytes freed.
        """
        deleted_files = 0
        freed_bytes = 0
        processed: set[str] = set()

        try:
            for message in messages():
                for attachment in message.attachments:
                    if attachment.file_name in processed:
                        continue
                    processed.add(attachment.file_name)

                    freed = self._evaluate_file(attachment, message.content)
                    if freed is not None:
                        deleted_files += 1
                        freed_bytes += freed
        except Exception as e:
            logger.error("Attachment cleanup failed: %s", e)
            return SweepResult(degraded=True, error=str(e))

        logger.info("Retention sweep deleted %d files (%d bytes)", deleted_files, freed_bytes)
        return SweepResult(deleted_files=deleted_files, freed_bytes=freed_bytes)

    def _evaluate_file(self, attachment: AttachmentRef, context: str) -> int | None:
        """Delete one file if expired. Returns bytes freed, or None if kept."""
        path = self.uploads_dir / Path(attachment.file_name).name
        try:
            if not path.is_file():
                return None

            stat = path.stat()
            age_days = self.age_in_days(path)
            classification = self.categorize_attachment(
                attachment.label, attachment.file_type, context
            )
            if not should_delete(age_days, classification.retention_days):
                return None

            path.unlink()
        except OSError as e:
            logger.error("Failed to delete file %s: %s", attachment.file_name, e)
            return None

        logger.info(
            "Deleted expired %s-value file: %s (%d days old)",
            classification.category.value,
            attachment.file_name,
            age_days,
        )
        if self.event_log is not None:
            self.event_log.log_file_deleted(
                attachment.file_name, classification.category.value, age_days, stat.st_size
            )
        return stat.st_size
