import logging

from stt_bridge.domain.audio import AudioFrame
from stt_bridge.domain.errors import UnsupportedOperationError
from stt_bridge.domain.events import TranscriptEvent
from stt_bridge.domain.noise_filter import NoiseFilter
from stt_bridge.domain.speech_stream import HANDSHAKE_TIMEOUT_SECONDS, AudioInput, SpeechStream
from stt_bridge.ports.transcriber import SpeechProviderPort

logger = logging.getLogger(__name__)


class SpeechRecognizer:
    def __init__(
        self,
        provider: SpeechProviderPort,
        noise_filter: NoiseFilter | None = None,
        handshake_timeout: float = HANDSHAKE_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._noise_filter = noise_filter or NoiseFilter()
        self._handshake_timeout = handshake_timeout

    @property
    def name(self) -> str:
        return self._provider.name

    @property
    def streaming(self) -> bool:
        return True

    @property
    def interim_results(self) -> bool:
        return True

    def stream(self, audio: AudioInput, handshake_timeout: float | None = None) -> SpeechStream:
        logger.debug("Opening %s speech stream", self._provider.name)
        return SpeechStream(
            provider=self._provider,
            audio=audio,
            noise_filter=self._noise_filter,
            handshake_timeout=handshake_timeout if handshake_timeout is not None else self._handshake_timeout,
        )

    async def recognize(self, frame: AudioFrame | bytes) -> TranscriptEvent:
        raise UnsupportedOperationError(f"{self._provider.name} supports streaming recognition only")
