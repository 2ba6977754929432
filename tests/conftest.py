from __future__ import annotations

import struct

import pytest

from voicelink.audio.wav import encode_wav
from voicelink.core.errors import UpstreamError
from voicelink.core.session_store import SessionStore


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSTT:
    """STTPort double that returns *text* or raises *error*."""

    def __init__(self, text: str = "hello world", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[bytes] = []

    async def transcribe(self, audio: bytes) -> str:
        self.calls.append(audio)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(max_age=300, clock=clock)


@pytest.fixture
def fake_stt() -> FakeSTT:
    return FakeSTT()


@pytest.fixture
def failing_stt() -> FakeSTT:
    return FakeSTT(error=UpstreamError.from_response(500, "internal error"))


@pytest.fixture
def wav_bytes() -> bytes:
    """A tenth of a second of a quiet ramp at 16 kHz."""
    samples = [(i % 200) - 100 for i in range(1600)]
    pcm = struct.pack(f"<{len(samples)}h", *samples)
    return encode_wav(pcm, 16000)
