"""Normalized events coming from the call provider.

The provider reaches us three ways (webhooks, client tool calls, and the
conversation API the poller reads) with slightly different payload shapes.
``parse_provider_event`` folds them into one ``ProviderEvent``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from clinicrelay.transcript import Speaker

logger = logging.getLogger(__name__)

SCHEDULE_TOOLS = {"request_schedule_selection", "get_user_appointment_preference", "show_calendar"}
QUESTION_TOOLS = {"ask_user_question", "ask_user"}
ENDED_TYPES = {"conversation.ended", "call.ended", "call_ended", "conversation_ended"}
ENDED_STATUSES = {"ended", "completed", "done", "failed"}


class ProviderEventKind(Enum):
    TRANSCRIPT = "transcript"
    SCHEDULE_REQUEST = "schedule_request"
    QUESTION = "question"
    CALL_ENDED = "call_ended"


@dataclass
class ProviderEvent:
    kind: ProviderEventKind
    speaker: Speaker = Speaker.UNKNOWN
    text: str = ""
    slots: list = field(default_factory=list)
    question: str = ""


def agent_speech(text: str) -> ProviderEvent:
    return ProviderEvent(ProviderEventKind.TRANSCRIPT, speaker=Speaker.AGENT, text=text)


def receptionist_speech(text: str) -> ProviderEvent:
    return ProviderEvent(ProviderEventKind.TRANSCRIPT, speaker=Speaker.RECEPTIONIST, text=text)


def call_ended(reason: str = "") -> ProviderEvent:
    return ProviderEvent(ProviderEventKind.CALL_ENDED, text=reason)


def transcript_event_from_message(message: dict) -> ProviderEvent | None:
    """Build a transcript event from a conversation-API message entry."""
    text = message.get("message") or message.get("text") or ""
    if not text:
        return None
    # Everyone on the line who is not the agent is clinic staff
    speaker = Speaker.from_label(message.get("role"))
    if speaker is not Speaker.AGENT:
        speaker = Speaker.RECEPTIONIST
    return ProviderEvent(ProviderEventKind.TRANSCRIPT, speaker=speaker, text=text)


def _tool_call_event(tool_call: dict) -> ProviderEvent | None:
    name = tool_call.get("tool_name", "")
    params = tool_call.get("parameters") or {}
    if name in SCHEDULE_TOOLS:
        slots = params.get("available_slots") or params.get("slots") or []
        return ProviderEvent(ProviderEventKind.SCHEDULE_REQUEST, slots=list(slots))
    if name in QUESTION_TOOLS:
        return ProviderEvent(ProviderEventKind.QUESTION, question=params.get("question", ""))
    logger.warning("Unhandled client tool call: %s", name)
    return None


def parse_provider_event(payload: dict) -> ProviderEvent | None:
    """Map a raw provider payload onto a ProviderEvent, or None if unrecognized."""
    if not isinstance(payload, dict):
        return None
    event_type = payload.get("type")

    if event_type == "agent_response":
        text = (payload.get("agent_response_event") or {}).get("agent_response", "")
        return agent_speech(text) if text else None

    if event_type == "user_transcript":
        inner = payload.get("user_transcript_event") or payload.get("user_transcription_event") or {}
        text = inner.get("user_transcript", "")
        return receptionist_speech(text) if text else None

    if event_type == "client_tool_call":
        return _tool_call_event(payload.get("client_tool_call") or {})

    if event_type in ENDED_TYPES or str(payload.get("status", "")).lower() in ENDED_STATUSES:
        return call_ended(str(event_type or payload.get("status")))

    # Custom transcript webhook: {message, sender: "bot" | "receptionist"}
    if payload.get("message") and payload.get("sender"):
        return ProviderEvent(
            ProviderEventKind.TRANSCRIPT,
            speaker=Speaker.from_label(payload["sender"]),
            text=payload["message"],
        )

    if payload.get("speaker") and payload.get("text"):
        return ProviderEvent(
            ProviderEventKind.TRANSCRIPT,
            speaker=Speaker.from_label(payload["speaker"]),
            text=payload["text"],
        )

    return None
