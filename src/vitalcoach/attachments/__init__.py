"""Attachment classification and retention."""

from .retention import (
    KEEP_FOREVER,
    AttachmentClassification,
    AttachmentRef,
    AttachmentRetentionService,
    MessageAttachments,
    RetentionDurations,
    RetentionTier,
    SweepResult,
    match_category,
    should_delete,
)

__all__ = [
    "KEEP_FOREVER",
    "AttachmentClassification",
    "AttachmentRef",
    "AttachmentRetentionService",
    "MessageAttachments",
    "RetentionDurations",
    "RetentionTier",
    "SweepResult",
    "match_category",
    "should_delete",
]
