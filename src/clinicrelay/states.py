from enum import Enum

TRANSCRIPT_STATES = {"active", "on_hold"}
PENDING_STATES = {"on_hold"}
TERMINAL_STATES = {"ended"}


class CallState(Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    ENDED = "ended"

    @property
    def admits_transcript(self) -> bool:
        return self.value in TRANSCRIPT_STATES

    @property
    def admits_pending(self) -> bool:
        return self.value in PENDING_STATES

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_STATES


TRANSITIONS = {
    CallState.CONNECTING: {CallState.ACTIVE, CallState.ENDED},
    CallState.ACTIVE: {CallState.ON_HOLD, CallState.ENDED},
    CallState.ON_HOLD: {CallState.ACTIVE, CallState.ENDED},
    CallState.ENDED: set(),
}


def can_transition(current: CallState, new: CallState) -> bool:
    return new in TRANSITIONS.get(current, set())
