from dataclasses import dataclass

SAMPLE_RATE = 16000
NUM_CHANNELS = 1
SAMPLE_WIDTH_BYTES = 2


@dataclass(frozen=True)
class AudioFrame:
    data: bytes
    sample_rate: int = SAMPLE_RATE
    num_channels: int = NUM_CHANNELS

    @property
    def is_supported_format(self) -> bool:
        return self.sample_rate == SAMPLE_RATE and self.num_channels == NUM_CHANNELS

    @property
    def duration_ms(self) -> float:
        samples = len(self.data) // (SAMPLE_WIDTH_BYTES * self.num_channels)
        return samples * 1000 / self.sample_rate


class FlushSentinel:
    """Pause marker in an audio sequence. Not an end of stream."""

    def __repr__(self) -> str:
        return "FLUSH"


FLUSH = FlushSentinel()


def as_audio_frame(item: AudioFrame | bytes) -> AudioFrame:
    if isinstance(item, AudioFrame):
        return item
    return AudioFrame(data=bytes(item))
