from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from stt_bridge.adapters.gladia_stt import DEFAULT_MODEL, GLADIA_API_URL
from stt_bridge.adapters.speechmatics_stt import DEFAULT_MAX_DELAY_SECONDS, SPEECHMATICS_URL


class SpeechBridgeConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STT_BRIDGE_",
        env_file=".env.local",
        extra="ignore",
    )

    provider: Literal["speechmatics", "gladia"] = "speechmatics"
    api_key: str = ""
    api_key_file: str = ""
    language: str | None = None

    speechmatics_url: str = SPEECHMATICS_URL
    speechmatics_max_delay: float = DEFAULT_MAX_DELAY_SECONDS
    speechmatics_operating_point: Literal["standard", "enhanced"] | None = None

    gladia_api_url: str = GLADIA_API_URL
    gladia_model: str = DEFAULT_MODEL

    handshake_timeout_seconds: float = 10.0

    frame_duration_ms: int = 20
    capture_device: str = ""
    capture_gain: float = 1.0

    log_file: str = ""

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(path) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""

    def resolve_api_key(self) -> str:
        return self.api_key or self.read_secret(self.api_key_file)
