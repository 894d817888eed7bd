import asyncio
import json
import logging
from typing import Any

from stt_bridge.adapters.websocket_transport import connect_websocket
from stt_bridge.domain.audio import SAMPLE_RATE, AudioFrame
from stt_bridge.domain.errors import ConfigError, ConnectionFailedError
from stt_bridge.domain.events import SpeechAlternative
from stt_bridge.domain.normalizer import (
    IGNORED,
    MessageKind,
    NormalizedMessage,
    as_seconds,
    decode_message,
    preview,
    section,
    transcript_text,
)
from stt_bridge.domain.session import Session
from stt_bridge.domain.state import SessionState
from stt_bridge.ports.transport import Connector

logger = logging.getLogger(__name__)

# EU endpoint; US is wss://usa.rt.speechmatics.com/v2
SPEECHMATICS_URL = "wss://eu2.rt.speechmatics.com/v2"
DEFAULT_LANGUAGE = "he"
DEFAULT_MAX_DELAY_SECONDS = 1.0
INTERIM_CONFIDENCE = 0.8
FINAL_CONFIDENCE = 0.95
DRAIN_SECONDS = 2.0


class SpeechmaticsTranscriber:
    name = "speechmatics"

    def __init__(
        self,
        api_key: str,
        language: str | None = None,
        url: str = SPEECHMATICS_URL,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
        operating_point: str | None = None,
        enable_partials: bool = True,
        drain_seconds: float = DRAIN_SECONDS,
        connect: Connector = connect_websocket,
    ) -> None:
        if not api_key:
            raise ConfigError("Speechmatics API key is required")
        self._api_key = api_key
        self.language = language or DEFAULT_LANGUAGE
        self._url = url
        self._max_delay = max_delay
        self._operating_point = operating_point
        self._enable_partials = enable_partials
        self.drain_seconds = drain_seconds
        self._connect = connect

    def start_recognition_message(self) -> dict[str, Any]:
        transcription_config: dict[str, Any] = {
            "language": self.language,
            "enable_partials": self._enable_partials,
            "max_delay": self._max_delay,
        }
        if self._operating_point:
            transcription_config["operating_point"] = self._operating_point
        return {
            "message": "StartRecognition",
            "audio_format": {
                "type": "raw",
                "encoding": "pcm_s16le",
                "sample_rate": SAMPLE_RATE,
            },
            "transcription_config": transcription_config,
        }

    async def open(self) -> Session:
        session = Session(provider=self.name, api_key=self._api_key, language=self.language)
        session.transport = await self._connect(self._url, {"Authorization": f"Bearer {self._api_key}"})
        try:
            start_recognition = self.start_recognition_message()
            logger.info("Sending StartRecognition: %s", json.dumps(start_recognition))
            await session.transport.send(json.dumps(start_recognition))
        except asyncio.CancelledError:
            await session.transport.close()
            raise
        except Exception as exc:
            await session.transport.close()
            raise ConnectionFailedError(f"Failed to send StartRecognition: {exc}") from exc
        session.transition_to(SessionState.AWAITING_READY)
        return session

    async def forward_frame(self, session: Session, frame: AudioFrame) -> None:
        await session.transport.send(frame.data)
        session.frames_sent += 1

    async def end_input(self, session: Session) -> None:
        if not session.is_transport_open:
            return
        logger.info("Input stream ended, sending EndOfStream (last_seq_no=%d)", session.frames_sent)
        await session.transport.send(json.dumps({"message": "EndOfStream", "last_seq_no": session.frames_sent}))

    async def close(self, session: Session) -> None:
        if session.transport is not None:
            await session.transport.close()
        if not session.state.is_terminal:
            session.transition_to(SessionState.CLOSED)

    def decode(self, raw: str | bytes) -> dict[str, Any]:
        return decode_message(raw, "message")

    def normalize(self, message: dict[str, Any], session: Session) -> NormalizedMessage:
        message_type = message["message"]

        if message_type == "RecognitionStarted":
            return NormalizedMessage(kind=MessageKind.READY, session_id=message.get("id"))

        if message_type == "AudioAdded":
            return IGNORED

        if message_type in ("AddPartialTranscript", "AddTranscript"):
            metadata = section(message, "metadata")
            text = transcript_text(metadata.get("transcript"))
            if not text.strip():
                return IGNORED
            is_final = message_type == "AddTranscript"
            return NormalizedMessage(
                kind=MessageKind.FINAL if is_final else MessageKind.INTERIM,
                alternative=SpeechAlternative(
                    text=text,
                    language=session.language_tag,
                    start_time=as_seconds(metadata.get("start_time")),
                    end_time=as_seconds(metadata.get("end_time")),
                    confidence=FINAL_CONFIDENCE if is_final else INTERIM_CONFIDENCE,
                ),
            )

        if message_type == "EndOfTranscript":
            logger.info("End of transcript received")
            return NormalizedMessage(kind=MessageKind.END_OF_TRANSCRIPT)

        if message_type == "Warning":
            logger.warning("Speechmatics warning: %s %s", message.get("type"), message.get("reason"))
        elif message_type == "Error":
            logger.error("Speechmatics error: %s %s", message.get("type"), message.get("reason"))
        elif message_type == "Info":
            logger.info("Speechmatics info: %s %s", message.get("type"), message.get("reason"))
        else:
            logger.debug("Unhandled Speechmatics message: %s", preview(message))
        return IGNORED
