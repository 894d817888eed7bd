import asyncio
import contextlib
import logging
from collections.abc import AsyncIterable

from stt_bridge.domain.audio import AudioFrame, FlushSentinel, as_audio_frame
from stt_bridge.domain.errors import ConnectionFailedError, HandshakeTimeoutError, ProtocolError, SpeechBridgeError
from stt_bridge.domain.event_sink import EventSink
from stt_bridge.domain.events import (
    SpeechAlternative,
    SpeechEventType,
    TranscriptEvent,
    end_of_speech,
    start_of_speech,
    transcript,
)
from stt_bridge.domain.metrics import SessionMetrics
from stt_bridge.domain.noise_filter import NoiseFilter
from stt_bridge.domain.normalizer import MessageKind, NormalizedMessage
from stt_bridge.domain.session import Session
from stt_bridge.domain.state import SessionState
from stt_bridge.ports.transcriber import SpeechProviderPort

logger = logging.getLogger(__name__)

HANDSHAKE_TIMEOUT_SECONDS = 10.0
FRAME_LOG_INTERVAL = 100

AudioInput = AsyncIterable[AudioFrame | bytes | FlushSentinel]


class SpeechStream:
    """One streaming recognition session over a provider connection.

    Iterating the stream starts the session. Events come out in this order:
    one START_OF_SPEECH once the provider is ready, transcripts in the order
    the provider sent them, then one END_OF_SPEECH as soon as the audio input
    is exhausted. A fatal error ends the iteration by raising instead of
    yielding END_OF_SPEECH. ``aclose()`` abandons the session.
    """

    def __init__(
        self,
        provider: SpeechProviderPort,
        audio: AudioInput,
        noise_filter: NoiseFilter | None = None,
        handshake_timeout: float = HANDSHAKE_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._audio = audio
        self._noise_filter = noise_filter or NoiseFilter()
        self._handshake_timeout = handshake_timeout
        self._sink = EventSink()
        self._metrics = SessionMetrics()
        self._session: Session | None = None
        self._run_task: asyncio.Task | None = None
        self._format_warned = False

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def handshake_timeout(self) -> float:
        return self._handshake_timeout

    @property
    def metrics(self) -> SessionMetrics:
        return self._metrics

    @property
    def state(self) -> SessionState | None:
        return self._session.state if self._session else None

    def __aiter__(self) -> "SpeechStream":
        return self

    async def __anext__(self) -> TranscriptEvent:
        self._ensure_started()
        return await self._sink.get()

    async def __aenter__(self) -> "SpeechStream":
        self._ensure_started()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._run_task and not self._run_task.done():
            self._run_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._run_task
        self._sink.close()

    def _ensure_started(self) -> None:
        if self._run_task is None:
            if self._sink.closed:
                return
            self._run_task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        session: Session | None = None
        receiver: asyncio.Task | None = None
        forwarder: asyncio.Task | None = None
        try:
            session = await self._provider.open()
            self._session = session
            receiver = asyncio.create_task(self._receive_messages(session), name=f"{self._provider.name}-receive")
            forwarder = asyncio.create_task(self._forward_audio(session), name=f"{self._provider.name}-forward")

            await self._await_ready(session, receiver, forwarder)
            await self._await_input_end(forwarder, receiver)

            session.transition_to(SessionState.DRAINING)
            await self._provider.end_input(session)
            self._emit(end_of_speech(session.language_tag))

            await self._drain(session, receiver)
        except asyncio.CancelledError:
            logger.info("Speech stream cancelled (%s)", self._provider.name)
            raise
        except SpeechBridgeError as exc:
            logger.error("Speech session failed (%s): %s", self._provider.name, exc)
            self._fail(session, exc)
        except Exception as exc:
            logger.exception("Speech session crashed (%s)", self._provider.name)
            self._fail(session, exc)
        finally:
            await _cancel(forwarder)
            await _cancel(receiver)
            if session is not None:
                await self._provider.close(session)
            self._sink.close()
            self._metrics.log_summary(self._provider.name)

    def _fail(self, session: Session | None, error: BaseException) -> None:
        if session is not None and not session.state.is_terminal:
            session.transition_to(SessionState.FAILED)
        self._sink.close(error=error)

    async def _await_ready(self, session: Session, receiver: asyncio.Task, forwarder: asyncio.Task) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._handshake_timeout
        ready = asyncio.create_task(session.ready.wait())
        watched = {ready, receiver, forwarder}
        try:
            while ready in watched and receiver in watched:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, _ = await asyncio.wait(watched, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                if not done:
                    break
                if forwarder in done:
                    # running out of input before readiness is not an error
                    forwarder.result()
                watched -= done
        finally:
            ready.cancel()

        if session.handshake_complete:
            return
        if receiver.done():
            receiver.result()
            raise ConnectionFailedError(f"{self._provider.name} closed the connection during the handshake")
        raise HandshakeTimeoutError(
            f"No readiness signal from {self._provider.name} within {self._handshake_timeout:.1f}s"
        )

    async def _await_input_end(self, forwarder: asyncio.Task, receiver: asyncio.Task) -> None:
        done, _ = await asyncio.wait({forwarder, receiver}, return_when=asyncio.FIRST_COMPLETED)
        if forwarder in done:
            forwarder.result()
            logger.info("Audio input exhausted after %d frames", self._metrics.frames_sent)
            return
        receiver.result()
        raise ConnectionFailedError(f"{self._provider.name} closed the connection while streaming")

    async def _drain(self, session: Session, receiver: asyncio.Task) -> None:
        ended = asyncio.create_task(session.transcript_ended.wait())
        try:
            await asyncio.wait(
                {ended, receiver},
                timeout=self._provider.drain_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            ended.cancel()

        if session.transcript_ended.is_set():
            logger.debug("End of transcript acknowledged by %s", self._provider.name)
        elif receiver.done():
            logger.debug("%s closed the connection while draining", self._provider.name)
        else:
            logger.debug("Drain grace period of %.1fs elapsed", self._provider.drain_seconds)

    async def _forward_audio(self, session: Session) -> None:
        async for item in self._audio:
            if isinstance(item, FlushSentinel):
                self._metrics.flushes += 1
                continue

            frame = as_audio_frame(item)
            if not frame.is_supported_format:
                self._metrics.frames_dropped += 1
                if not self._format_warned:
                    self._format_warned = True
                    logger.warning(
                        "Dropping audio at %dHz/%dch, only 16kHz mono is supported",
                        frame.sample_rate,
                        frame.num_channels,
                    )
                continue

            if session.state is not SessionState.STREAMING or not session.is_transport_open:
                self._metrics.frames_dropped += 1
                continue

            await self._provider.forward_frame(session, frame)
            self._metrics.frames_sent += 1
            if self._metrics.frames_sent % FRAME_LOG_INTERVAL == 0:
                logger.debug("Sent %d audio frames to %s", self._metrics.frames_sent, self._provider.name)

    async def _receive_messages(self, session: Session) -> None:
        async for raw in session.transport.messages():
            self._metrics.messages_received += 1
            try:
                message = self._provider.decode(raw)
                normalized = self._provider.normalize(message, session)
            except ProtocolError as exc:
                self._metrics.malformed_messages += 1
                logger.warning("Discarding malformed %s message: %s", self._provider.name, exc)
                continue
            self._handle(session, normalized)

    def _handle(self, session: Session, message: NormalizedMessage) -> None:
        if message.kind is MessageKind.READY:
            self._on_ready(session, message)
        elif message.kind is MessageKind.START_OF_SPEECH:
            # START_OF_SPEECH is emitted once, at readiness.
            logger.debug("Speech started (%s)", self._provider.name)
        elif message.kind is MessageKind.INTERIM:
            self._emit_transcript(session, SpeechEventType.INTERIM_TRANSCRIPT, message.alternative)
        elif message.kind is MessageKind.FINAL:
            if not self._noise_filter.accepts(message.alternative.text):
                self._metrics.transcripts_filtered += 1
                logger.debug("Filtered noise transcript: %r", message.alternative.text)
                return
            self._emit_transcript(session, SpeechEventType.FINAL_TRANSCRIPT, message.alternative)
        elif message.kind is MessageKind.END_OF_TRANSCRIPT:
            session.transcript_ended.set()

    def _on_ready(self, session: Session, message: NormalizedMessage) -> None:
        if session.handshake_complete or session.state is not SessionState.AWAITING_READY:
            logger.debug("Ignoring readiness signal in state %s", session.state.name)
            return
        session.mark_ready(message.session_id)
        logger.info("Recognition started (%s, session_id=%s)", self._provider.name, session.session_id)
        self._emit(start_of_speech(session.language_tag))

    def _emit_transcript(self, session: Session, event_type: SpeechEventType, alternative: SpeechAlternative) -> None:
        if session.state is not SessionState.STREAMING:
            self._metrics.late_transcripts += 1
            logger.debug("Dropping %s in state %s: %r", event_type.name, session.state.name, alternative.text)
            return
        if event_type is SpeechEventType.FINAL_TRANSCRIPT:
            logger.info("Transcript: %s", alternative.text)
        else:
            logger.debug("Transcript (interim): %s", alternative.text)
        self._emit(transcript(event_type, alternative))

    def _emit(self, event: TranscriptEvent) -> None:
        self._sink.put(event)
        self._metrics.events_emitted += 1


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    if task.done():
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Task %s ended with %r", task.get_name(), task.exception())
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
