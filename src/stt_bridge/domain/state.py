from enum import Enum, auto


class SessionState(Enum):
    CONNECTING = auto()
    AWAITING_READY = auto()
    STREAMING = auto()
    DRAINING = auto()
    CLOSED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.FAILED)


VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CONNECTING: {SessionState.AWAITING_READY, SessionState.CLOSED, SessionState.FAILED},
    SessionState.AWAITING_READY: {SessionState.STREAMING, SessionState.CLOSED, SessionState.FAILED},
    SessionState.STREAMING: {SessionState.DRAINING, SessionState.CLOSED, SessionState.FAILED},
    SessionState.DRAINING: {SessionState.CLOSED, SessionState.FAILED},
    SessionState.CLOSED: set(),
    SessionState.FAILED: set(),
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: SessionState, target: SessionState) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")
