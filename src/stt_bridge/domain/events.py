from dataclasses import dataclass
from enum import Enum, auto


class SpeechEventType(Enum):
    START_OF_SPEECH = auto()
    INTERIM_TRANSCRIPT = auto()
    FINAL_TRANSCRIPT = auto()
    END_OF_SPEECH = auto()


@dataclass(frozen=True)
class SpeechAlternative:
    text: str
    language: str
    start_time: float = 0.0
    end_time: float = 0.0
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within 0.0-1.0, got {self.confidence}")


@dataclass(frozen=True)
class TranscriptEvent:
    type: SpeechEventType
    alternatives: tuple[SpeechAlternative, ...]

    def __post_init__(self) -> None:
        if not self.alternatives:
            raise ValueError("TranscriptEvent needs at least one alternative")

    @property
    def text(self) -> str:
        return self.alternatives[0].text

    @property
    def is_final(self) -> bool:
        return self.type is SpeechEventType.FINAL_TRANSCRIPT


def start_of_speech(language: str, time: float = 0.0) -> TranscriptEvent:
    return TranscriptEvent(
        type=SpeechEventType.START_OF_SPEECH,
        alternatives=(SpeechAlternative(text="", language=language, start_time=time, end_time=time),),
    )


def end_of_speech(language: str) -> TranscriptEvent:
    return TranscriptEvent(
        type=SpeechEventType.END_OF_SPEECH,
        alternatives=(SpeechAlternative(text="", language=language),),
    )


def transcript(event_type: SpeechEventType, alternative: SpeechAlternative) -> TranscriptEvent:
    return TranscriptEvent(type=event_type, alternatives=(alternative,))
