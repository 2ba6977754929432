from __future__ import annotations

import asyncio
import logging

import aiohttp

from voicelink.core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

SILICONFLOW_URL = "https://api.siliconflow.cn/v1/audio/transcriptions"
DEFAULT_MODEL = "FunAudioLLM/SenseVoiceSmall"


class SiliconFlowSTT:
    """STTPort implementation using the SiliconFlow transcription API.

    One multipart upload per call, no streaming and no retries.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        url: str = SILICONFLOW_URL,
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def transcribe(self, audio: bytes) -> str:
        if not self._api_key:
            raise ConfigurationError("SILICONFLOW_API_KEY not configured")

        form = aiohttp.FormData()
        form.add_field(
            "file", audio, filename="recording.wav", content_type="audio/wav",
        )
        form.add_field("model", self._model)
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(self._url, data=form, headers=headers) as resp:
                    if not resp.ok:
                        body = await resp.text()
                        logger.warning(
                            "Transcription API returned %d: %s", resp.status, body[:200],
                        )
                        raise UpstreamError.from_response(resp.status, body)
                    try:
                        payload = await resp.json(content_type=None)
                    except ValueError as e:
                        raise UpstreamError(
                            "Transcription API returned a non-JSON body"
                        ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(f"Transcription API request failed: {e!r}") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise UpstreamError("Transcription API response has no 'text' field")
        logger.info("Transcribed %d bytes: %s", len(audio), text[:100])
        return text
