import asyncio
import io
import json
import wave
from collections.abc import AsyncIterator, Callable

import httpx
import numpy as np
import pytest

from stt_bridge.adapters.gladia_stt import GladiaTranscriber
from stt_bridge.adapters.speechmatics_stt import SpeechmaticsTranscriber
from stt_bridge.domain.audio import AudioFrame, FlushSentinel
from stt_bridge.domain.errors import ConnectionFailedError


SAMPLE_RATE = 16000
FRAME_DURATION_MS = 20
FRAME_SIZE = int(SAMPLE_RATE * FRAME_DURATION_MS / 1000)

GLADIA_WS_URL = "wss://api.gladia.io/v2/live?token=test-token"


def generate_silence(duration_ms: int = FRAME_DURATION_MS, sample_rate: int = SAMPLE_RATE) -> bytes:
    num_samples = int(sample_rate * duration_ms / 1000)
    return np.zeros(num_samples, dtype=np.int16).tobytes()


def generate_sine_wave(
    frequency: float = 440.0,
    duration_ms: int = FRAME_DURATION_MS,
    amplitude: float = 0.8,
    sample_rate: int = SAMPLE_RATE,
) -> bytes:
    num_samples = int(sample_rate * duration_ms / 1000)
    t = np.arange(num_samples) / sample_rate
    signal = np.sin(2 * np.pi * frequency * t) * amplitude
    return (signal * 32767).astype(np.int16).tobytes()


def pcm_to_wav_bytes(pcm_data: bytes, sample_rate: int = SAMPLE_RATE, channels: int = 1) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm_data)
    return buffer.getvalue()


def silence_frames(count: int) -> list[AudioFrame]:
    return [AudioFrame(data=generate_silence()) for _ in range(count)]


def tone_frames(count: int) -> list[AudioFrame]:
    return [AudioFrame(data=generate_sine_wave()) for _ in range(count)]


async def audio_source(
    frames: list[AudioFrame | bytes | FlushSentinel],
    delay: float = 0.0,
    tail_seconds: float = 0.05,
) -> AsyncIterator[AudioFrame | bytes | FlushSentinel]:
    for frame in frames:
        yield frame
        await asyncio.sleep(delay)
    await asyncio.sleep(tail_seconds)


async def endless_audio(delay: float = 0.01) -> AsyncIterator[AudioFrame]:
    while True:
        yield AudioFrame(data=generate_silence())
        await asyncio.sleep(delay)


_CLOSED = object()

OnSend = Callable[["FakeTransport", str | bytes], None]


class FakeTransport:
    def __init__(self, on_send: OnSend | None = None) -> None:
        self._on_send = on_send
        self._inbound: asyncio.Queue[object] = asyncio.Queue()
        self._open = True
        self.sent: list[str | bytes] = []
        self.closed_by_client = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sent_messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent if isinstance(m, str)]

    @property
    def sent_audio(self) -> list[bytes]:
        return [m for m in self.sent if isinstance(m, bytes)]

    async def send(self, data: str | bytes) -> None:
        if not self._open:
            return
        self.sent.append(data)
        if self._on_send:
            self._on_send(self, data)

    def feed(self, message: dict | str | bytes) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbound.put_nowait(message)

    def remote_close(self) -> None:
        self._open = False
        self._inbound.put_nowait(_CLOSED)

    async def messages(self) -> AsyncIterator[str | bytes]:
        while True:
            item = await self._inbound.get()
            if item is _CLOSED:
                return
            yield item

    async def close(self) -> None:
        if self._open:
            self._open = False
            self.closed_by_client = True
            self._inbound.put_nowait(_CLOSED)


class FakeConnector:
    def __init__(self, transport: FakeTransport | None = None, error: Exception | None = None) -> None:
        self.transport = transport or FakeTransport()
        self._error = error
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def __call__(self, url: str, headers: dict[str, str]) -> FakeTransport:
        self.calls.append((url, headers))
        if self._error:
            raise self._error
        return self.transport


class SpeechmaticsServer:
    """Scripted Speechmatics peer: acknowledges StartRecognition and replies
    to audio frames by sequence number."""

    def __init__(
        self,
        ready: bool = True,
        replies: dict[int, list[dict | str]] | None = None,
        end_of_transcript: bool = True,
        session_id: str = "sm-session-1",
    ) -> None:
        self._ready = ready
        self._replies = replies or {}
        self._end_of_transcript = end_of_transcript
        self._session_id = session_id
        self._frames = 0

    def __call__(self, transport: FakeTransport, data: str | bytes) -> None:
        if isinstance(data, bytes):
            self._frames += 1
            for reply in self._replies.get(self._frames, []):
                transport.feed(reply)
            return
        message = json.loads(data)
        if message["message"] == "StartRecognition" and self._ready:
            transport.feed({"message": "RecognitionStarted", "id": self._session_id})
        elif message["message"] == "EndOfStream" and self._end_of_transcript:
            transport.feed({"message": "EndOfTranscript"})


class GladiaServer:
    def __init__(
        self,
        ready: bool = True,
        replies: dict[int, list[dict | str]] | None = None,
        session_id: str = "gl-session-1",
    ) -> None:
        self._ready = ready
        self._replies = replies or {}
        self._session_id = session_id
        self._frames = 0
        self._started = False

    def __call__(self, transport: FakeTransport, data: str | bytes) -> None:
        message = json.loads(data)
        if message["type"] == "audio_chunk":
            self._frames += 1
            for reply in self._replies.get(self._frames, []):
                transport.feed(reply)
        elif message["type"] == "stop_recording":
            transport.feed({"type": "end_recording"})
            transport.feed({"type": "end_session", "session_id": self._session_id})

    def connected(self, transport: FakeTransport) -> None:
        if self._ready:
            transport.feed({"type": "start_session", "session_id": self._session_id})


class GladiaConnector(FakeConnector):
    def __init__(self, server: GladiaServer) -> None:
        super().__init__(transport=FakeTransport(on_send=server))
        self._server = server

    async def __call__(self, url: str, headers: dict[str, str]) -> FakeTransport:
        transport = await super().__call__(url, headers)
        self._server.connected(transport)
        return transport


def speechmatics_partial(text: str, start: float = 0.0, end: float = 0.5) -> dict:
    return {
        "message": "AddPartialTranscript",
        "metadata": {"transcript": text, "start_time": start, "end_time": end},
        "results": [],
    }


def speechmatics_final(text: str, start: float = 0.0, end: float = 1.0) -> dict:
    return {
        "message": "AddTranscript",
        "metadata": {"transcript": text, "start_time": start, "end_time": end},
        "results": [],
    }


def gladia_transcript(text: str, is_final: bool, confidence: float | None = None, language: str = "en") -> dict:
    utterance = {"text": text, "start": 0.2, "end": 1.1, "language": language}
    if confidence is not None:
        utterance["confidence"] = confidence
    return {"type": "transcript", "session_id": "gl-session-1", "data": {"is_final": is_final, "utterance": utterance}}


def gladia_http_client(
    status_code: int = 201,
    body: dict | None = None,
    requests: list[httpx.Request] | None = None,
    error: Exception | None = None,
) -> httpx.AsyncClient:
    payload = body if body is not None else {"id": "gl-session-1", "url": GLADIA_WS_URL}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if error:
            raise error
        return httpx.Response(status_code, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_speechmatics(server: SpeechmaticsServer | None = None, **kwargs) -> tuple[SpeechmaticsTranscriber, FakeConnector]:
    connector = FakeConnector(transport=FakeTransport(on_send=server or SpeechmaticsServer()))
    kwargs.setdefault("drain_seconds", 0.2)
    provider = SpeechmaticsTranscriber(api_key="sm-test-key", language="en", connect=connector, **kwargs)
    return provider, connector


def make_gladia(server: GladiaServer | None = None, **kwargs) -> tuple[GladiaTranscriber, GladiaConnector]:
    connector = GladiaConnector(server or GladiaServer())
    kwargs.setdefault("drain_seconds", 0.2)
    kwargs.setdefault("http_client", gladia_http_client())
    provider = GladiaTranscriber(api_key="gl-test-key", language="en", connect=connector, **kwargs)
    return provider, connector


async def collect(stream) -> list:
    return [event async for event in stream]


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def speechmatics_provider():
    provider, _ = make_speechmatics()
    return provider


@pytest.fixture
def refused_connector():
    return FakeConnector(error=ConnectionFailedError("WebSocket connection to wss://example failed: refused"))
