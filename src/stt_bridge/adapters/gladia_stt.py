import base64
import json
import logging
from typing import Any

import httpx

from stt_bridge.adapters.websocket_transport import connect_websocket
from stt_bridge.domain.audio import NUM_CHANNELS, SAMPLE_RATE, AudioFrame
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

GLADIA_API_URL = "https://api.gladia.io/v2/live"
DEFAULT_MODEL = "solaria-1"
DEFAULT_CONFIDENCE = 0.9
DRAIN_SECONDS = 1.0
INIT_TIMEOUT_SECONDS = 10.0

LIFECYCLE_EVENTS = ("start_recording", "end_recording")


class GladiaTranscriber:
    name = "gladia"

    def __init__(
        self,
        api_key: str,
        language: str | None = None,
        api_url: str = GLADIA_API_URL,
        model: str = DEFAULT_MODEL,
        drain_seconds: float = DRAIN_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        connect: Connector = connect_websocket,
    ) -> None:
        if not api_key:
            raise ConfigError("Gladia API key is required")
        self._api_key = api_key
        # None lets Gladia detect the language
        self.language = language
        self._api_url = api_url
        self._model = model
        self.drain_seconds = drain_seconds
        self._http_client = http_client
        self._connect = connect

    def session_parameters(self) -> dict[str, Any]:
        return {
            "encoding": "wav/pcm",
            "bit_depth": 16,
            "sample_rate": SAMPLE_RATE,
            "channels": NUM_CHANNELS,
            "model": self._model,
            "language_config": {
                "languages": [self.language] if self.language else [],
                "code_switching": False,
            },
            "messages_config": {
                "receive_partial_transcripts": True,
                "receive_final_transcripts": True,
                "receive_speech_events": True,
                "receive_acknowledgments": False,
                "receive_errors": True,
                "receive_lifecycle_events": True,
            },
        }

    async def open(self) -> Session:
        session = Session(provider=self.name, api_key=self._api_key, language=self.language)
        session.session_id, url = await self._init_session()
        session.transport = await self._connect(url, {})
        session.transition_to(SessionState.AWAITING_READY)
        return session

    async def _init_session(self) -> tuple[str, str]:
        headers = {"Content-Type": "application/json", "x-gladia-key": self._api_key}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self._api_url, json=self.session_parameters(), headers=headers)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(INIT_TIMEOUT_SECONDS)) as client:
                    response = await client.post(self._api_url, json=self.session_parameters(), headers=headers)
        except httpx.HTTPError as exc:
            raise ConnectionFailedError(f"Gladia init request failed: {exc}") from exc

        if not response.is_success:
            logger.error("Gladia init failed: %s %s", response.status_code, response.text)
            raise ConnectionFailedError(f"Gladia init failed: {response.status_code} {response.text}")

        try:
            body = response.json()
            session_id, url = body["id"], body["url"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise ConnectionFailedError(f"Gladia init returned an unusable response: {response.text[:200]}") from exc

        logger.info("Gladia session created: %s", session_id)
        logger.debug("Gladia WebSocket URL: %s", url)
        return session_id, url

    async def forward_frame(self, session: Session, frame: AudioFrame) -> None:
        chunk = base64.b64encode(frame.data).decode("ascii")
        await session.transport.send(json.dumps({"type": "audio_chunk", "data": {"chunk": chunk}}))
        session.frames_sent += 1

    async def end_input(self, session: Session) -> None:
        if not session.is_transport_open:
            return
        logger.info("Input stream ended, sending stop_recording")
        await session.transport.send(json.dumps({"type": "stop_recording"}))

    async def close(self, session: Session) -> None:
        if session.transport is not None:
            await session.transport.close()
        if not session.state.is_terminal:
            session.transition_to(SessionState.CLOSED)

    def decode(self, raw: str | bytes) -> dict[str, Any]:
        return decode_message(raw, "type")

    def normalize(self, message: dict[str, Any], session: Session) -> NormalizedMessage:
        message_type = message["type"]

        if message_type == "start_session":
            return NormalizedMessage(kind=MessageKind.READY, session_id=message.get("session_id"))

        if message_type == "speech_start":
            return NormalizedMessage(kind=MessageKind.START_OF_SPEECH)

        if message_type == "speech_end":
            logger.debug("Speech ended")
            return IGNORED

        if message_type == "transcript":
            return self._normalize_transcript(section(message, "data"), session)

        if message_type == "end_session":
            logger.info("Gladia session ended")
            return NormalizedMessage(kind=MessageKind.END_OF_TRANSCRIPT)

        if message_type == "error":
            logger.error("Gladia error: %s", message.get("data") or message.get("error"))
        elif message_type in LIFECYCLE_EVENTS:
            logger.debug("Lifecycle event: %s", message_type)
        else:
            logger.debug("Unhandled Gladia message: %s", preview(message))
        return IGNORED

    def _normalize_transcript(self, data: dict[str, Any], session: Session) -> NormalizedMessage:
        utterance = section(data, "utterance")
        text = transcript_text(utterance.get("text"))
        if not text.strip():
            return IGNORED
        language = utterance.get("language")
        if not isinstance(language, str) or not language:
            language = session.language_tag
        return NormalizedMessage(
            kind=MessageKind.FINAL if data.get("is_final") is True else MessageKind.INTERIM,
            alternative=SpeechAlternative(
                text=text,
                language=language,
                start_time=as_seconds(utterance.get("start")),
                end_time=as_seconds(utterance.get("end")),
                confidence=_confidence(utterance.get("confidence")),
            ),
        )


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if not 0.0 < value <= 1.0:
        return DEFAULT_CONFIDENCE
    return float(value)
