from typing import Any, Protocol

from stt_bridge.domain.audio import AudioFrame
from stt_bridge.domain.normalizer import NormalizedMessage
from stt_bridge.domain.session import Session


class SpeechProviderPort(Protocol):
    name: str
    drain_seconds: float
    language: str | None

    async def open(self) -> Session: ...
    def decode(self, raw: str | bytes) -> dict[str, Any]: ...
    def normalize(self, message: dict[str, Any], session: Session) -> NormalizedMessage: ...
    async def forward_frame(self, session: Session, frame: AudioFrame) -> None: ...
    async def end_input(self, session: Session) -> None: ...
    async def close(self, session: Session) -> None: ...
