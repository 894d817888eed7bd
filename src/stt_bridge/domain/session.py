import asyncio
import logging
from dataclasses import dataclass, field

from stt_bridge.domain.state import SessionState, validate_transition
from stt_bridge.ports.transport import TransportPort

logger = logging.getLogger(__name__)

UNKNOWN_LANGUAGE = "unknown"


@dataclass
class Session:
    provider: str
    api_key: str = field(repr=False)
    language: str | None = None
    transport: TransportPort | None = field(default=None, repr=False)
    session_id: str | None = None
    state: SessionState = SessionState.CONNECTING
    handshake_complete: bool = False
    frames_sent: int = 0
    ready: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    transcript_ended: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def language_tag(self) -> str:
        return self.language or UNKNOWN_LANGUAGE

    @property
    def is_transport_open(self) -> bool:
        return self.transport is not None and self.transport.is_open

    def transition_to(self, target: SessionState) -> None:
        validate_transition(self.state, target)
        logger.info("State: %s -> %s (%s)", self.state.name, target.name, self.provider)
        self.state = target

    def mark_ready(self, session_id: str | None = None) -> None:
        self.handshake_complete = True
        if session_id:
            self.session_id = session_id
        self.transition_to(SessionState.STREAMING)
        self.ready.set()
