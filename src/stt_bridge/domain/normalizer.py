import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from stt_bridge.domain.errors import ProtocolError
from stt_bridge.domain.events import SpeechAlternative


class MessageKind(Enum):
    READY = auto()
    START_OF_SPEECH = auto()
    INTERIM = auto()
    FINAL = auto()
    END_OF_TRANSCRIPT = auto()
    IGNORED = auto()


@dataclass(frozen=True)
class NormalizedMessage:
    kind: MessageKind
    alternative: SpeechAlternative | None = None
    session_id: str | None = None


IGNORED = NormalizedMessage(kind=MessageKind.IGNORED)


def decode_message(raw: str | bytes, type_field: str) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("binary message is not UTF-8 text") from exc
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(message, dict):
        raise ProtocolError(f"expected a JSON object, got {type(message).__name__}")
    if not isinstance(message.get(type_field), str):
        raise ProtocolError(f"message has no '{type_field}' field")
    return message


def section(message: dict[str, Any], key: str) -> dict[str, Any]:
    value = message.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProtocolError(f"'{key}' must be an object")
    return value


def as_seconds(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def transcript_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProtocolError("transcript text must be a string")
    return value


def preview(message: dict[str, Any], limit: int = 200) -> str:
    return json.dumps(message, ensure_ascii=False)[:limit]
