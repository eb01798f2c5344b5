import time
import uuid
from dataclasses import dataclass, field

from clinicrelay.states import CallState
from clinicrelay.transcript import Speaker, TranscriptLine, to_json_array


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


@dataclass
class CallSession:
    target_phone: str
    clinic_name: str = ""
    reason: str = ""
    caller_context: str = ""

    id: str = field(default_factory=new_call_id)
    state: CallState = CallState.CONNECTING

    # Set once the provider accepts the call
    provider_conversation_id: str | None = None
    provider_call_sid: str = ""

    # Transcript, append-only
    transcript_lines: list = field(default_factory=list)

    # Hold bookkeeping
    pending_user_response: bool = False
    hold_kind: str | None = None
    offered_slots: list = field(default_factory=list)

    # Lifecycle metadata
    started_at: float = field(default_factory=time.time)
    ended_at: float = 0.0
    end_reason: str = ""

    def append_line(self, speaker: Speaker, text: str) -> TranscriptLine:
        line = TranscriptLine(speaker=speaker, text=text)
        self.transcript_lines.append(line)
        return line

    def snapshot(self) -> dict:
        """Read-only JSON view for polling clients."""
        return {
            "id": self.id,
            "state": self.state.value,
            "clinic": self.clinic_name,
            "reason": self.reason,
            "provider_conversation_id": self.provider_conversation_id,
            "pending_user_response": self.pending_user_response,
            "hold_kind": self.hold_kind,
            "offered_slots": [slot.to_dict() for slot in self.offered_slots],
            "transcript_length": len(self.transcript_lines),
            "transcript": to_json_array(self.transcript_lines),
            "started_at": self.started_at,
            "ended_at": self.ended_at or None,
            "end_reason": self.end_reason or None,
        }
