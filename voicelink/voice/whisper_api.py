from __future__ import annotations

import asyncio
import logging

import openai
from openai import OpenAI

from voicelink.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


class WhisperAPISTT:
    """STTPort implementation using OpenAI Whisper API."""

    def __init__(self, api_key: str, model: str = "whisper-1") -> None:
        self._api_key = api_key
        self._client = OpenAI(api_key=api_key) if api_key else None
        self._model = model

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe a WAV payload via OpenAI Whisper API.

        The SDK client is synchronous, so the call runs in the default
        executor to keep the event loop free for polling requests.
        """
        if self._client is None:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        client = self._client

        def _sync_transcribe() -> object:
            return client.audio.transcriptions.create(
                model=self._model,
                file=("recording.wav", audio, "audio/wav"),
            )

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _sync_transcribe)
        except openai.APIStatusError as e:
            raise UpstreamError.from_response(e.status_code, e.response.text) from e
        except openai.APIError as e:
            raise UpstreamError(f"Transcription API request failed: {e}") from e

        text = getattr(response, "text", None)
        if not isinstance(text, str):
            raise UpstreamError("Transcription API response has no 'text' field")
        logger.info("Transcribed %d bytes: %s", len(audio), text[:100])
        return text
