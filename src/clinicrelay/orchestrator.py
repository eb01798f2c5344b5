"""Call-relay orchestrator.

Bridges three asynchronous actors: the call provider (outbound call,
webhooks, transcript polling), the browser UI (event channel + HTTP
answers), and the human decisions that the provider's agent waits on.

State lives on the instance: one registry slot for the call in flight, one
pending-response slot for the blocked webhook, and the injected event sink.
Everything runs on the event loop, so no locking is needed. The price is
single tenancy: one call and one pending request at a time.

    Idle -> CONNECTING -> ACTIVE <-> ON_HOLD -> ENDED
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable

from clinicrelay import events
from clinicrelay.errors import (
    CallAlreadyActiveError,
    CallsDisabledError,
    CallStateError,
    ProviderError,
)
from clinicrelay.events import EventSink
from clinicrelay.pending import (
    DEFAULT_QUESTION_ANSWER,
    DEFAULT_SCHEDULE_SELECTION,
    PENDING_TIMEOUT_S,
    PendingResponseSlot,
)
from clinicrelay.poller import TranscriptPoller
from clinicrelay.prompts import build_call_brief, format_caller_context
from clinicrelay.provider import ConversationClient
from clinicrelay.provider_events import ProviderEvent
from clinicrelay.registry import ActiveCallRegistry
from clinicrelay.scheduling import (
    ScheduleSlot,
    contains_scheduling_offer,
    fallback_slots,
    parse_slot,
    parse_slots,
    slots_from_text,
)
from clinicrelay.session import CallSession
from clinicrelay.states import CallState, can_transition
from clinicrelay.transcript import Speaker, to_json_array

logger = logging.getLogger(__name__)

DEFAULT_CLINIC_NAME = "Medical Clinic"


def schedule_confirmation(selection: str) -> str:
    return (
        f"The patient has selected: {selection}. "
        "Please confirm this appointment time with the receptionist."
    )


def answer_relay(answer: str) -> str:
    return f'The user answered: "{answer}". Relay this exactly to the receptionist.'


@dataclass
class SubmitResult:
    delivered: bool
    via: str = ""


def _slot_dicts(slots: list[ScheduleSlot]) -> list[dict]:
    return [slot.to_dict() for slot in slots]


class CallOrchestrator:
    def __init__(
        self,
        sink: EventSink,
        client: ConversationClient | None = None,
        registry: ActiveCallRegistry | None = None,
        pending: PendingResponseSlot | None = None,
        pending_timeout: float = PENDING_TIMEOUT_S,
        poll_interval: float | None = None,
        today: Callable[[], date] | None = None,
    ):
        self.sink = sink
        self.client = client
        self.registry = registry or ActiveCallRegistry()
        self.pending = pending or PendingResponseSlot()
        self.pending_timeout = pending_timeout
        self._today = today or date.today
        self.poller = None
        if client is not None and poll_interval:
            self.poller = TranscriptPoller(client, self.on_provider_event, interval=poll_interval)

    # ── Queries ──

    def get_status(self) -> CallSession | None:
        return self.registry.get()

    # ── Initiation ──

    async def initiate_call(
        self,
        target_phone: str,
        reason: str,
        clinic_name: str = DEFAULT_CLINIC_NAME,
        caller_context=None,
    ) -> dict:
        if not target_phone or not target_phone.strip():
            raise ValueError("Target phone is required")
        if self.client is None:
            raise CallsDisabledError("Outbound calling is not configured")

        current = self.registry.get()
        if current is not None:
            if not current.state.is_terminal:
                logger.warning("Rejecting new call: %s is still %s", current.id, current.state.value)
                raise CallAlreadyActiveError(current.id)
            self.registry.clear()

        session = CallSession(
            target_phone=target_phone.strip(),
            clinic_name=clinic_name or DEFAULT_CLINIC_NAME,
            reason=reason,
            caller_context=format_caller_context(caller_context),
        )
        self.registry.set(session)
        logger.info("Initiating call %s to %s (%s)", session.id, session.clinic_name, session.target_phone)
        await self.sink.publish(events.CALL_STARTED, {
            "callId": session.id,
            "clinic": session.clinic_name,
        })

        brief = build_call_brief(session.reason, session.clinic_name, session.caller_context)
        try:
            accepted = await self.client.start_outbound_call(
                session.target_phone,
                brief,
                dynamic_variables={
                    "call_id": session.id,
                    "clinic_name": session.clinic_name,
                    "reason": session.reason,
                },
            )
        except ProviderError as e:
            logger.error("Call %s failed to start: %s", session.id, e)
            await self._fail(session, str(e))
            raise

        if session.state.is_terminal:
            logger.warning("Call %s ended before the provider accepted it", session.id)
            return {"callId": session.id, "status": session.state.value}

        session.provider_conversation_id = accepted.conversation_id
        session.provider_call_sid = accepted.call_sid
        self._transition(session, CallState.ACTIVE)
        logger.info("Call %s accepted as conversation %s", session.id, accepted.conversation_id)
        if self.poller is not None:
            self.poller.start(accepted.conversation_id)
        return {"callId": session.id, "status": session.state.value}

    # ── Provider events ──

    async def on_provider_event(self, event: ProviderEvent) -> None:
        handler = getattr(self, f"_on_{event.kind.value}", None)
        if handler is None:
            logger.warning("No handler for provider event %s", event.kind.value)
            return
        await handler(event)

    async def _on_transcript(self, event: ProviderEvent) -> None:
        session = self.registry.get()
        text = event.text.strip()
        if not text:
            return
        if session is None or not session.state.admits_transcript:
            logger.info(
                "Ignoring transcript line while %s",
                session.state.value if session else "idle",
            )
            return

        line = session.append_line(event.speaker, text)
        await self.sink.publish(events.CALL_TRANSCRIPT_UPDATE, {
            "callId": session.id,
            "speaker": line.speaker.value,
            "text": line.text,
            "line": line.as_line(),
        })

        if session.state is CallState.ACTIVE and contains_scheduling_offer(text):
            logger.info("Scheduling offer detected on call %s, pausing for the patient", session.id)
            await self._hold_for_schedule(session, slots_from_text(text, self._today()))

    async def _on_schedule_request(self, event: ProviderEvent) -> None:
        session = self.registry.get()
        if session is None or not session.state.admits_transcript:
            logger.info("Ignoring schedule request with no active call")
            return
        today = self._today()
        slots = parse_slots(event.slots, today) or fallback_slots(today)
        await self._hold_for_schedule(session, slots)

    async def _on_question(self, event: ProviderEvent) -> None:
        session = self.registry.get()
        if session is None or not session.state.admits_transcript:
            logger.info("Ignoring agent question with no active call")
            return
        self._enter_hold(session, "question")
        await self.sink.publish(events.CALL_ON_HOLD, {"callId": session.id})
        await self.sink.publish(events.AGENT_NEEDS_INPUT, {
            "callId": session.id,
            "question": event.question,
        })

    async def _on_call_ended(self, event: ProviderEvent) -> None:
        session = self.registry.get()
        if session is None or session.state.is_terminal:
            if self.poller is not None:
                self.poller.stop()
            return
        await self._finish(session, event.text or "completed")

    # ── Long-poll webhooks ──

    async def request_schedule_selection(self, raw_slots=None) -> str:
        """Show the calendar and block until the patient picks a slot or time runs out."""
        today = self._today()
        slots = parse_slots(raw_slots, today) or fallback_slots(today)
        session = self._session_for_pending()
        call_id = session.id if session else None
        if session is not None:
            self._enter_hold(session, "schedule")
            session.offered_slots = slots

        # Hold and calendar go out before the slot opens so the UI can render first
        await self.sink.publish(events.CALL_ON_HOLD, {"callId": call_id})
        await self.sink.publish(events.SHOW_CALENDAR, {"callId": call_id, "slots": _slot_dicts(slots)})
        selection = await self.pending.open(
            timeout=self.pending_timeout,
            default=DEFAULT_SCHEDULE_SELECTION,
            kind="schedule",
        )
        logger.info("Schedule selection for %s: %s", call_id, selection)
        await self._resume_after_pending(session)
        return selection

    async def ask_user(self, question: str) -> str:
        """Put the agent's question to the patient and block for the answer."""
        session = self._session_for_pending()
        call_id = session.id if session else None
        if session is not None:
            self._enter_hold(session, "question")

        await self.sink.publish(events.CALL_ON_HOLD, {"callId": call_id})
        await self.sink.publish(events.AGENT_NEEDS_INPUT, {"callId": call_id, "question": question})
        answer = await self.pending.open(
            timeout=self.pending_timeout,
            default=DEFAULT_QUESTION_ANSWER,
            kind="question",
        )
        logger.info("Patient answer for %s: %s", call_id, answer)
        await self._resume_after_pending(session)
        return answer

    def _session_for_pending(self) -> CallSession | None:
        session = self.registry.get()
        if session is None:
            logger.warning("Opening pending request with no active call")
            return None
        if session.state is CallState.CONNECTING or session.state.is_terminal:
            raise CallStateError(f"Call {session.id} is {session.state.value}, cannot wait for input")
        return session

    async def _resume_after_pending(self, session: CallSession | None) -> None:
        if self.pending.is_open:
            # Superseded by a newer request; that one owns the hold now
            return
        if session is not None:
            if session.state is not CallState.ON_HOLD:
                return
            self._leave_hold(session)
        await self.sink.publish(events.CALL_RESUMED, {"callId": session.id if session else None})

    # ── UI responses ──

    async def submit_user_response(self, value: str) -> SubmitResult:
        if not value:
            raise ValueError("Response is required")

        session = self.registry.get()
        if self.pending.resolve(value):
            await self.sink.publish(events.AGENT_INPUT_RECEIVED, {
                "callId": session.id if session else None,
            })
            return SubmitResult(delivered=True, via="pending")

        if (
            session is None
            or session.state.is_terminal
            or not session.provider_conversation_id
            or self.client is None
        ):
            logger.warning("No active call or pending webhook to respond to")
            return SubmitResult(delivered=False)

        text = schedule_confirmation(value) if session.hold_kind == "schedule" else value
        sent = await self.client.send_user_message(session.provider_conversation_id, text)
        if not sent:
            logger.warning("Fallback send to conversation %s failed", session.provider_conversation_id)
            return SubmitResult(delivered=False)

        if session.state is CallState.ON_HOLD:
            self._leave_hold(session)
            await self.sink.publish(events.CALL_RESUMED, {"callId": session.id})
        return SubmitResult(delivered=True, via="provider")

    # ── Manual controls ──

    async def hold(self) -> None:
        session = self.registry.get()
        if session is not None and session.state is CallState.ACTIVE:
            self._enter_hold(session, "manual")
        await self.sink.publish(events.CALL_ON_HOLD, {"callId": session.id if session else None})

    async def resume(self, slot=None) -> ScheduleSlot | None:
        parsed = parse_slot(slot, self._today()) if slot else None
        session = self.registry.get()
        if session is not None and session.state is CallState.ON_HOLD:
            self._leave_hold(session)
        await self.sink.publish(events.CALL_RESUMED, {
            "callId": session.id if session else None,
            "slot": parsed.to_dict() if parsed else None,
        })
        return parsed

    async def trigger_emergency(self) -> None:
        logger.warning("Emergency triggered by agent")
        await self.sink.publish(events.EMERGENCY_TRIGGER, {})

    async def end_call(self, reason: str = "manual") -> bool:
        session = self.registry.get()
        if session is None or session.state.is_terminal:
            if self.poller is not None:
                self.poller.stop()
            return False
        await self._finish(session, reason)
        return True

    async def shutdown(self) -> None:
        if self.poller is not None:
            self.poller.stop()
        self.pending.cancel()
        if self.client is not None:
            await self.client.close()

    # ── Internals ──

    def _transition(self, session: CallSession, new_state: CallState) -> bool:
        if session.state is new_state:
            return True
        if not can_transition(session.state, new_state):
            logger.warning(
                "Invalid transition for %s: %s -> %s",
                session.id,
                session.state.value,
                new_state.value,
            )
            return False
        logger.info("Call %s: %s -> %s", session.id, session.state.value, new_state.value)
        session.state = new_state
        return True

    def _enter_hold(self, session: CallSession, kind: str) -> None:
        if self._transition(session, CallState.ON_HOLD):
            session.pending_user_response = True
            session.hold_kind = kind

    def _leave_hold(self, session: CallSession) -> None:
        if self._transition(session, CallState.ACTIVE):
            session.pending_user_response = False
            session.hold_kind = None

    async def _hold_for_schedule(self, session: CallSession, slots: list[ScheduleSlot]) -> None:
        self._enter_hold(session, "schedule")
        session.offered_slots = slots
        await self.sink.publish(events.CALL_ON_HOLD, {"callId": session.id})
        await self.sink.publish(events.SHOW_CALENDAR, {
            "callId": session.id,
            "slots": _slot_dicts(slots),
        })

    async def _fail(self, session: CallSession, error: str) -> None:
        line = session.append_line(Speaker.UNKNOWN, f"Call failed: {error}")
        await self.sink.publish(events.CALL_TRANSCRIPT_UPDATE, {
            "callId": session.id,
            "speaker": line.speaker.value,
            "text": line.text,
            "line": line.as_line(),
        })
        await self.sink.publish(events.ERROR, {"callId": session.id, "message": error})
        await self._finish(session, "provider_error")

    async def _finish(self, session: CallSession, reason: str) -> None:
        self._transition(session, CallState.ENDED)
        session.ended_at = time.time()
        session.end_reason = reason
        session.pending_user_response = False
        session.hold_kind = None
        if self.poller is not None:
            self.poller.stop()
        self.pending.cancel()
        logger.info("Call %s ended (%s) with %d transcript lines", session.id, reason, len(session.transcript_lines))
        await self.sink.publish(events.CALL_ENDED, {
            "callId": session.id,
            "reason": reason,
            "transcript": to_json_array(session.transcript_lines),
        })
