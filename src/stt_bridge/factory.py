import logging

from stt_bridge.config import SpeechBridgeConfig
from stt_bridge.domain.noise_filter import NoiseFilter
from stt_bridge.domain.recognizer import SpeechRecognizer
from stt_bridge.ports.audio import AudioSourcePort
from stt_bridge.ports.transcriber import SpeechProviderPort

logger = logging.getLogger(__name__)


def create_provider(config: SpeechBridgeConfig) -> SpeechProviderPort:
    api_key = config.resolve_api_key()
    if config.provider == "gladia":
        from stt_bridge.adapters.gladia_stt import GladiaTranscriber

        return GladiaTranscriber(
            api_key=api_key,
            language=config.language,
            api_url=config.gladia_api_url,
            model=config.gladia_model,
        )
    from stt_bridge.adapters.speechmatics_stt import SpeechmaticsTranscriber

    return SpeechmaticsTranscriber(
        api_key=api_key,
        language=config.language,
        url=config.speechmatics_url,
        max_delay=config.speechmatics_max_delay,
        operating_point=config.speechmatics_operating_point,
    )


def create_recognizer(config: SpeechBridgeConfig) -> SpeechRecognizer:
    provider = create_provider(config)
    logger.info("Using %s (language=%s)", provider.name, provider.language or "auto")
    return SpeechRecognizer(
        provider=provider,
        noise_filter=NoiseFilter(),
        handshake_timeout=config.handshake_timeout_seconds,
    )


def create_audio_source(config: SpeechBridgeConfig, wav_path: str | None = None) -> AudioSourcePort:
    if wav_path:
        from stt_bridge.adapters.wav_audio import WavFileSource

        return WavFileSource(path=wav_path, frame_duration_ms=config.frame_duration_ms, trailing_silence_ms=1000)
    from stt_bridge.adapters.sounddevice_audio import SounddeviceCapture

    return SounddeviceCapture(
        device=config.capture_device or None,
        frame_duration_ms=config.frame_duration_ms,
        gain=config.capture_gain,
    )
