from __future__ import annotations

from typing import Protocol


class STTPort(Protocol):
    """Speech-to-text abstract interface."""

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe a complete WAV payload. Returns the transcription string.

        Raises ``ConfigurationError`` when the backend has no credential and
        ``UpstreamError`` when the service call fails.
        """
        ...
