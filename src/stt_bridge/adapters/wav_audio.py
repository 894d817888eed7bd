import asyncio
import logging
import wave
from collections.abc import AsyncIterator
from pathlib import Path

from stt_bridge.domain.audio import FLUSH, NUM_CHANNELS, SAMPLE_RATE, SAMPLE_WIDTH_BYTES, AudioFrame, FlushSentinel
from stt_bridge.domain.errors import ConfigError

logger = logging.getLogger(__name__)


class WavFileSource:
    def __init__(
        self,
        path: str | Path,
        frame_duration_ms: int = 20,
        realtime: bool = True,
        trailing_silence_ms: int = 0,
    ) -> None:
        self._path = Path(path)
        self._frame_duration_ms = frame_duration_ms
        self._realtime = realtime
        self._trailing_silence_ms = trailing_silence_ms
        self._frame_size = int(SAMPLE_RATE * frame_duration_ms / 1000)
        self._pcm: bytes | None = None
        self._stopped = False

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE

    @property
    def frame_size(self) -> int:
        return self._frame_size

    async def start(self) -> None:
        self._pcm = load_wav_pcm(self._path)
        self._stopped = False
        logger.info(
            "Streaming %s (%.1fs, frame=%dms)",
            self._path.name,
            len(self._pcm) / (SAMPLE_RATE * SAMPLE_WIDTH_BYTES),
            self._frame_duration_ms,
        )

    async def stop(self) -> None:
        self._stopped = True

    async def read_frames(self) -> AsyncIterator[AudioFrame | FlushSentinel]:
        if self._pcm is None:
            return
        pacing = self._frame_duration_ms / 1000 if self._realtime else 0.0
        for chunk in split_into_frames(self._pcm, self._frame_size):
            if self._stopped:
                return
            yield AudioFrame(data=chunk)
            await asyncio.sleep(pacing)

        silence_frames = int(self._trailing_silence_ms / self._frame_duration_ms)
        silence = bytes(self._frame_size * SAMPLE_WIDTH_BYTES)
        for _ in range(silence_frames):
            if self._stopped:
                return
            yield AudioFrame(data=silence)
            await asyncio.sleep(pacing)
        yield FLUSH


def load_wav_pcm(path: Path) -> bytes:
    try:
        with wave.open(str(path), "rb") as wf:
            if wf.getframerate() != SAMPLE_RATE:
                raise ConfigError(f"Expected {SAMPLE_RATE}Hz, got {wf.getframerate()}Hz in {path}")
            if wf.getnchannels() != NUM_CHANNELS:
                raise ConfigError(f"Expected mono, got {wf.getnchannels()} channels in {path}")
            if wf.getsampwidth() != SAMPLE_WIDTH_BYTES:
                raise ConfigError(f"Expected 16-bit samples, got {wf.getsampwidth() * 8}-bit in {path}")
            return wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise ConfigError(f"Not a PCM WAV file: {path} ({exc})") from exc


def split_into_frames(pcm_data: bytes, frame_size: int) -> list[bytes]:
    bytes_per_frame = frame_size * SAMPLE_WIDTH_BYTES
    frames = []
    for i in range(0, len(pcm_data), bytes_per_frame):
        chunk = pcm_data[i : i + bytes_per_frame]
        if len(chunk) == bytes_per_frame:
            frames.append(chunk)
    return frames
