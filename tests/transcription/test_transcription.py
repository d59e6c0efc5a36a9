"""Tests for TranscriptionService."""

import base64
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vitalcoach.transcription import (
    TranscriptionError,
    TranscriptionService,
    get_file_format_info,
    get_provider_capabilities,
)


class TestFileFormat:
    """Tests for format detection."""

    @pytest.mark.parametrize(
        "filename,extension,mime",
        [
            ("recording.webm", "webm", "audio/webm"),
            ("voice.M4A", "mp4", "audio/mp4"),
            ("clip.ogg", "ogg", "audio/ogg"),
            ("note.wav", "wav", "audio/wav"),
            ("song.mp3", "mp3", "audio/mp3"),
            ("blob", "mp4", "audio/mp4"),
        ],
    )
    def test_detects_format(self, filename, extension, mime):
        info = get_file_format_info(filename)
        assert info.extension == extension
        assert info.mime_type == mime


def test_provider_capabilities():
    capabilities = get_provider_capabilities()
    assert set(capabilities) == {"webspeech", "whisper", "google"}
    assert capabilities["webspeech"]["offline_support"] is True


class TestWhisper:
    """Tests for Groq Whisper transcription."""

    @pytest.mark.asyncio
    async def test_transcribes(self):
        groq = MagicMock()
        groq.audio.transcriptions.create = AsyncMock(return_value=MagicMock(text="hello there"))
        service = TranscriptionService(groq_client=groq)

        result = await service.transcribe_with_whisper(b"audio", "recording.webm")

        assert result.text == "hello there"
        kwargs = groq.audio.transcriptions.create.call_args.kwargs
        assert kwargs["file"] == ("audio.webm", b"audio")
        assert kwargs["model"] == "whisper-large-v3"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        with pytest.raises(TranscriptionError, match="Whisper") as exc_info:
            await TranscriptionService().transcribe_with_whisper(b"audio")
        assert exc_info.value.provider == "Whisper"

    @pytest.mark.asyncio
    async def test_provider_error(self):
        groq = MagicMock()
        groq.audio.transcriptions.create = AsyncMock(side_effect=RuntimeError("quota"))

        with pytest.raises(TranscriptionError, match="quota"):
            await TranscriptionService(groq_client=groq).transcribe_with_whisper(b"audio")


def google_service(handler) -> TranscriptionService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TranscriptionService(google_api_key="g-key", http_client=client)


class TestGoogle:
    """Tests for Google Speech-to-Text."""

    @pytest.mark.asyncio
    async def test_transcribes(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"results": [{"alternatives": [{"transcript": "log my lunch", "confidence": 0.93}]}]},
            )

        result = await google_service(handler).transcribe_with_google(b"opus")

        assert result.text == "log my lunch"
        assert result.confidence == 0.93
        request = seen[0]
        assert request.url.params["key"] == "g-key"
        body = json.loads(request.content)
        assert body["config"]["encoding"] == "WEBM_OPUS"
        assert body["config"]["sampleRateHertz"] == 48000
        assert body["config"]["languageCode"] == "en-US"
        assert body["audio"]["content"] == base64.b64encode(b"opus").decode()

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(TranscriptionError, match="not configured"):
            await TranscriptionService().transcribe_with_google(b"opus")

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Invalid audio"}})

        with pytest.raises(TranscriptionError, match="Invalid audio") as exc_info:
            await google_service(handler).transcribe_with_google(b"opus")
        assert exc_info.value.provider == "Google"

    @pytest.mark.asyncio
    async def test_no_results(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        with pytest.raises(TranscriptionError, match="No transcription results"):
            await google_service(handler).transcribe_with_google(b"opus")

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"transcript": "hi"}])

        with pytest.raises(TranscriptionError, match="unexpected response body"):
            await google_service(handler).transcribe_with_google(b"opus")

    @pytest.mark.asyncio
    async def test_string_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": "API key expired"})

        with pytest.raises(TranscriptionError, match="API key expired"):
            await google_service(handler).transcribe_with_google(b"opus")

    @pytest.mark.asyncio
    async def test_list_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json=["oops"])

        with pytest.raises(TranscriptionError, match="Unknown error"):
            await google_service(handler).transcribe_with_google(b"opus")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(TranscriptionError, match="offline"):
            await google_service(handler).transcribe_with_google(b"opus")
