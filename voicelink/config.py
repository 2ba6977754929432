from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from voicelink.voice.port import STTPort

_DEFAULT_MODELS = {
    "siliconflow": "FunAudioLLM/SenseVoiceSmall",
    "openai": "whisper-1",
}


def _env_number(name: str, default: str, kind: type = float):
    raw = os.environ.get(name, "") or default
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Config:
    siliconflow_api_key: str = ""
    openai_api_key: str = ""
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = ""
    stt_provider: str = "siliconflow"
    stt_model: str = ""
    wait_timeout: float = 60.0
    poll_interval: float = 0.5
    session_max_age: float = 300.0
    sweep_interval: float = 60.0
    max_upload_size: int = 16 * 1024 * 1024

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or f"http://localhost:{self.port}").rstrip("/")
        if not self.stt_model:
            self.stt_model = _DEFAULT_MODELS.get(self.stt_provider, "")

    @classmethod
    def from_env(cls) -> Config:
        load_dotenv()
        return cls(
            siliconflow_api_key=os.environ.get("SILICONFLOW_API_KEY", ""),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            host=os.environ.get("VOICELINK_HOST", "0.0.0.0"),
            port=_env_number("PORT", "8000", int),
            base_url=os.environ.get("VOICELINK_BASE_URL", ""),
            stt_provider=os.environ.get("VOICELINK_STT", "siliconflow").lower(),
            stt_model=os.environ.get("VOICELINK_STT_MODEL", ""),
            wait_timeout=_env_number("VOICELINK_WAIT_TIMEOUT", "60"),
            poll_interval=_env_number("VOICELINK_POLL_INTERVAL", "0.5"),
            session_max_age=_env_number("VOICELINK_SESSION_MAX_AGE", "300"),
            sweep_interval=_env_number("VOICELINK_SWEEP_INTERVAL", "60"),
            max_upload_size=_env_number("VOICELINK_MAX_UPLOAD_BYTES", str(16 * 1024 * 1024), int),
        )

    def build_stt(self) -> STTPort:
        """Instantiate the configured transcription backend."""
        if self.stt_provider == "siliconflow":
            from voicelink.voice.siliconflow import SiliconFlowSTT
            return SiliconFlowSTT(api_key=self.siliconflow_api_key, model=self.stt_model)
        if self.stt_provider == "openai":
            from voicelink.voice.whisper_api import WhisperAPISTT
            return WhisperAPISTT(api_key=self.openai_api_key, model=self.stt_model)
        raise ValueError(f"Unknown VOICELINK_STT provider: {self.stt_provider!r}")
