from typing import AsyncIterator, Protocol

from stt_bridge.domain.audio import AudioFrame, FlushSentinel


class AudioSourcePort(Protocol):
    @property
    def sample_rate(self) -> int: ...
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    def read_frames(self) -> AsyncIterator[AudioFrame | FlushSentinel]: ...
