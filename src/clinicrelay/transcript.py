import time
from dataclasses import dataclass, field
from enum import Enum

AGENT_LABELS = {"agent", "bot", "assistant", "ai"}
RECEPTIONIST_LABELS = {"user", "receptionist", "human", "caller", "clinic"}


class Speaker(Enum):
    AGENT = "Agent"
    RECEPTIONIST = "Receptionist"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: str | None) -> "Speaker":
        """Map a provider role/sender label onto a speaker.

        The provider calls the clinic side of the line "user", since the
        receptionist is the one talking to the agent.
        """
        lower = (label or "").strip().lower()
        if lower in AGENT_LABELS:
            return cls.AGENT
        if lower in RECEPTIONIST_LABELS:
            return cls.RECEPTIONIST
        return cls.UNKNOWN


@dataclass(frozen=True)
class TranscriptLine:
    speaker: Speaker
    text: str
    timestamp: float = field(default_factory=time.time, compare=False)

    def as_line(self) -> str:
        return f"{self.speaker.value}: {self.text}"

    def to_dict(self) -> dict:
        return {
            "speaker": self.speaker.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }


def to_plain_text(lines: list[TranscriptLine]) -> str:
    """Render transcript lines as "Speaker: text", one per line."""
    if not lines:
        return ""
    return "\n".join(line.as_line() for line in lines)


def to_json_array(lines: list[TranscriptLine]) -> list[dict]:
    """Render transcript lines as {speaker, text, timestamp} dicts in order."""
    if not lines:
        return []
    return [line.to_dict() for line in lines]
