"""HTTP surface for the browser UI and the call provider's webhooks."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from clinicrelay.config import Settings
from clinicrelay.errors import (
    CallAlreadyActiveError,
    CallsDisabledError,
    CallStateError,
    ProviderError,
)
from clinicrelay.orchestrator import CallOrchestrator, answer_relay, schedule_confirmation
from clinicrelay.provider_events import ProviderEventKind, parse_provider_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/call", tags=["call"])

DEFAULT_REASON = "General consultation"
EMERGENCY_REASON = "EMERGENCY - Patient needs immediate assistance"
EMERGENCY_CLINIC = "Emergency Services"


class InitiateCallRequest(BaseModel):
    phone: str | None = None
    clinic_name: str | None = None
    type: str | None = None
    userId: str | None = None
    reason: str | None = None
    patient_info: dict[str, Any] | str | None = None


class RespondRequest(BaseModel):
    response: str | None = None


class ShowCalendarRequest(BaseModel):
    slots: list[Any] | None = None


class AskUserRequest(BaseModel):
    question: str = ""


class ResumeRequest(BaseModel):
    slot: Any = None


def get_orchestrator(request: Request) -> CallOrchestrator:
    return request.app.state.orchestrator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post("/initiate")
async def initiate_call(
    body: InitiateCallRequest,
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    phone = (body.phone or "").strip()
    if body.type == "emergency":
        phone = phone or settings.emergency_phone_number
        reason, clinic_name = EMERGENCY_REASON, EMERGENCY_CLINIC
        logger.warning("Initiating EMERGENCY call to %s", phone)
    else:
        reason = body.reason or DEFAULT_REASON
        clinic_name = body.clinic_name

    if not phone:
        return _error(400, "Phone is required")

    if body.userId:
        logger.info("Call requested by user %s", body.userId)

    try:
        result = await orchestrator.initiate_call(
            phone,
            reason,
            clinic_name or "",
            caller_context=body.patient_info,
        )
    except ValueError as e:
        return _error(400, str(e))
    except CallAlreadyActiveError as e:
        return _error(409, str(e))
    except CallsDisabledError as e:
        return _error(503, str(e))
    except ProviderError as e:
        return _error(500, f"Failed to initiate call: {e}")
    return {"success": True, **result}


@router.post("/respond")
async def respond(body: RespondRequest, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    if not body.response:
        return _error(400, "Response is required")

    logger.info("User response received: %s", body.response)
    result = await orchestrator.submit_user_response(body.response)
    if not result.delivered:
        return _error(400, "No active call or pending webhook to respond to")

    message = "Response sent to agent" if result.via == "pending" else "Response sent to call"
    return {"success": True, "status": "sent", "message": message}


@router.get("/status")
async def status(orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    session = orchestrator.get_status()
    if session is None:
        return {"status": "no_active_call"}
    return session.snapshot()


@router.post("/hold")
async def hold(orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    logger.info("Agent requested hold")
    await orchestrator.hold()
    return {"success": True}


@router.post("/show-calendar")
async def show_calendar(
    body: ShowCalendarRequest,
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
):
    """Long-poll: held open until the patient picks a slot or the timeout elapses."""
    logger.info("Agent requesting schedule selection, slots=%s", body.slots)
    try:
        selection = await orchestrator.request_schedule_selection(body.slots)
    except CallStateError as e:
        return _error(409, str(e))
    return {
        "success": True,
        "user_selection": selection,
        "message": schedule_confirmation(selection),
    }


@router.post("/ask-user")
async def ask_user(body: AskUserRequest, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    """Long-poll: held open until the patient answers the agent's question."""
    if not body.question:
        return _error(400, "Question is required")
    logger.info("Agent asking user: %s", body.question)
    try:
        answer = await orchestrator.ask_user(body.question)
    except CallStateError as e:
        return _error(409, str(e))
    return {
        "success": True,
        "user_response": answer,
        "message": answer_relay(answer),
    }


@router.post("/resume")
async def resume(body: ResumeRequest, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    logger.info("Resuming call with slot: %s", body.slot)
    slot = await orchestrator.resume(body.slot)
    return {"success": True, "slot": slot.to_dict() if slot else None}


@router.post("/emergency")
async def emergency(orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    await orchestrator.trigger_emergency()
    return {"success": True, "message": "Emergency sequence initiated"}


async def _relay_provider_payload(payload: dict, orchestrator: CallOrchestrator) -> bool:
    event = parse_provider_event(payload)
    if event is None:
        logger.info("Unrecognized provider payload, keys=%s", list(payload.keys()))
        return False
    logger.debug("Provider event %s", event.kind.value)
    await orchestrator.on_provider_event(event)
    return True


@router.post("/transcript-webhook")
async def transcript_webhook(request: Request, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    payload = await _json_body(request)
    event = parse_provider_event(payload)
    if event is None or event.kind is not ProviderEventKind.TRANSCRIPT:
        logger.info("Transcript webhook without speaker/text, keys=%s", list(payload.keys()))
        return {"received": True}
    await orchestrator.on_provider_event(event)
    return {"received": True}


@router.post("/send-transcript")
async def send_transcript(request: Request, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    payload = await _json_body(request)
    await _relay_provider_payload(payload, orchestrator)
    return {"success": True, "received": True}


@router.post("/webhook")
async def webhook(request: Request, orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    payload = await _json_body(request)
    logger.info("Provider webhook: type=%s", payload.get("type"))
    await _relay_provider_payload(payload, orchestrator)
    return {"received": True}


@router.post("/end")
async def end_call(orchestrator: CallOrchestrator = Depends(get_orchestrator)):
    ended = await orchestrator.end_call("manual")
    logger.info("Manual end requested (ended=%s)", ended)
    return {"success": True, "ended": ended}
