"""Audio transcription providers."""

from .service import (
    AudioFormat,
    TranscriptionError,
    TranscriptionResult,
    TranscriptionService,
    get_file_format_info,
    get_provider_capabilities,
)

__all__ = [
    "AudioFormat",
    "TranscriptionError",
    "TranscriptionResult",
    "TranscriptionService",
    "get_file_format_info",
    "get_provider_capabilities",
]
