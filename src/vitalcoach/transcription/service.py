"""Speech-to-text via Groq Whisper or Google Speech-to-Text."""

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from groq import AsyncGroq

logger = logging.getLogger(__name__)

WHISPER_MODEL = "whisper-large-v3"
GOOGLE_SPEECH_URL = "https://speech.googleapis.com/v1/speech:recognize"
GOOGLE_TIMEOUT = 30.0

# Checked in order; the first marker found in the lowercased name wins.
AUDIO_FORMATS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("webm",), "webm", "audio/webm"),
    (("mp4", ".m4a"), "mp4", "audio/mp4"),
    (("ogg",), "ogg", "audio/ogg"),
    (("wav",), "wav", "audio/wav"),
    (("mp3",), "mp3", "audio/mp3"),
)
DEFAULT_AUDIO_FORMAT = ("mp4", "audio/mp4")


class TranscriptionError(Exception):
    """A transcription provider failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} transcription failed: {message}")
        self.provider = provider


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    confidence: float | None = None
    language: str | None = "auto-detected"


@dataclass(frozen=True)
class AudioFormat:
    extension: str
    mime_type: str


def get_file_format_info(filename: str) -> AudioFormat:
    """Guess container and MIME type from a file name; defaults to mp4."""
    lower = filename.lower()
    for markers, extension, mime_type in AUDIO_FORMATS:
        if any(marker in lower for marker in markers):
            return AudioFormat(extension, mime_type)
    return AudioFormat(*DEFAULT_AUDIO_FORMAT)


def get_provider_capabilities() -> dict[str, dict[str, Any]]:
    return {
        "webspeech": {
            "name": "Web Speech API",
            "offline_support": True,
            "real_time": True,
            "languages": ["auto-detect"],
            "description": "Browser-based speech recognition (may work offline)",
        },
        "whisper": {
            "name": "Groq Whisper",
            "offline_support": False,
            "real_time": False,
            "languages": ["auto-detect"],
            "description": "High-accuracy AI transcription (requires internet)",
        },
        "google": {
            "name": "Google Speech-to-Text",
            "offline_support": False,
            "real_time": False,
            "languages": ["en-US"],
            "description": "Google Cloud transcription (requires internet)",
        },
    }


class TranscriptionService:
    """Sends recorded audio to a transcription provider."""

    def __init__(
        self,
        groq_client: AsyncGroq | None = None,
        google_api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        whisper_model: str = WHISPER_MODEL,
    ) -> None:
        """Initialize the service.

        Args:
            groq_client: Client for Whisper transcription.
            google_api_key: API key for Google Speech-to-Text.
            http_client: Client for Google requests. One is created per
                call if None.
            whisper_model: Groq Whisper model name.
        """
        self.groq_client = groq_client
        self.google_api_key = google_api_key
        self._http_client = http_client
        self.whisper_model = whisper_model

    async def transcribe_with_whisper(
        self, audio: bytes, filename: str = "audio.wav"
    ) -> TranscriptionResult:
        """Transcribe audio with Groq's Whisper endpoint.

        Raises:
            TranscriptionError: If no client is configured or the call fails.
        """
        if self.groq_client is None:
            raise TranscriptionError("Whisper", "Groq API key not configured")

        audio_format = get_file_format_info(filename)
        upload_name = f"audio.{audio_format.extension}"
        try:
            transcription = await self.groq_client.audio.transcriptions.create(
                file=(upload_name, audio),
                model=self.whisper_model,
            )
        except Exception as e:
            logger.error("Whisper transcription failed: %s", e)
            raise TranscriptionError("Whisper", str(e)) from e

        logger.info("Transcribed %d bytes of %s audio with Whisper", len(audio), audio_format.extension)
        return TranscriptionResult(text=transcription.text)

    async def transcribe_with_google(self, audio: bytes) -> TranscriptionResult:
        """Transcribe WEBM/Opus audio with Google Speech-to-Text.

        Raises:
            TranscriptionError: On missing key, HTTP failure, or empty results.
        """
        if not self.google_api_key:
            raise TranscriptionError("Google", "Google API key not configured")

        body = {
            "config": {
                "encoding": "WEBM_OPUS",
                "sampleRateHertz": 48000,
                "languageCode": "en-US",
                "enableAutomaticPunctuation": True,
                "enableWordTimeOffsets": False,
            },
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }

        try:
            if self._http_client is not None:
                response = await self._request_google(self._http_client, body)
            else:
                async with httpx.AsyncClient(timeout=GOOGLE_TIMEOUT) as client:
                    response = await self._request_google(client, body)
        except httpx.HTTPError as e:
            logger.error("Google transcription request failed: %s", e)
            raise TranscriptionError("Google", str(e)) from e

        if response.status_code >= 400:
            raise TranscriptionError("Google", f"Google API error: {_google_error_message(response)}")

        try:
            data = response.json()
        except ValueError as e:
            raise TranscriptionError("Google", "invalid JSON response") from e

        if not isinstance(data, dict):
            raise TranscriptionError("Google", "unexpected response body")

        results = data.get("results") or []
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise TranscriptionError("Google", "No transcription results from Google API")

        alternatives = results[0].get("alternatives") or [{}]
        best = alternatives[0] if isinstance(alternatives, list) else {}
        if not isinstance(best, dict):
            best = {}
        return TranscriptionResult(
            text=best.get("transcript", ""),
            confidence=best.get("confidence", 0.0),
        )

    async def _request_google(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        return await client.post(
            GOOGLE_SPEECH_URL,
            params={"key": self.google_api_key},
            json=body,
        )


def _google_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Unknown error"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or "Unknown error"
    if isinstance(error, str) and error:
        return error
    return "Unknown error"
