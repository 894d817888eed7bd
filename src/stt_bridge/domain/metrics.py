import logging
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass
class SessionMetrics:
    frames_sent: int = 0
    frames_dropped: int = 0
    flushes: int = 0
    messages_received: int = 0
    malformed_messages: int = 0
    events_emitted: int = 0
    transcripts_filtered: int = 0
    late_transcripts: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def log_summary(self, provider: str) -> None:
        logger.info(
            "Session summary (%s): sent=%d dropped=%d flushes=%d messages=%d "
            "malformed=%d events=%d filtered=%d late=%d",
            provider,
            self.frames_sent,
            self.frames_dropped,
            self.flushes,
            self.messages_received,
            self.malformed_messages,
            self.events_emitted,
            self.transcripts_filtered,
            self.late_transcripts,
        )
