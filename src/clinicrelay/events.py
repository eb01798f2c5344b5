import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)

SHOW_CLINICS = "show_clinics"
SHOW_CALENDAR = "show_calendar"
CALL_STARTED = "call_started"
CALL_ON_HOLD = "call_on_hold"
CALL_RESUMED = "call_resumed"
CALL_ENDED = "call_ended"
CALL_TRANSCRIPT_UPDATE = "call_transcript_update"
EMERGENCY_TRIGGER = "emergency_trigger"
AGENT_NEEDS_INPUT = "agent_needs_input"
AGENT_INPUT_RECEIVED = "agent_input_received"
CHAT_RESPONSE = "chat_response"
ERROR = "error"

EVENT_NAMES = frozenset({
    SHOW_CLINICS, SHOW_CALENDAR, CALL_STARTED, CALL_ON_HOLD, CALL_RESUMED,
    CALL_ENDED, CALL_TRANSCRIPT_UPDATE, EMERGENCY_TRIGGER, AGENT_NEEDS_INPUT,
    AGENT_INPUT_RECEIVED, CHAT_RESPONSE, ERROR,
})


class EventSink(Protocol):
    async def publish(self, event: str, payload: Any = None) -> None: ...


def make_envelope(event: str, payload: Any = None) -> dict:
    return {
        "event": event,
        "data": payload,
        "ts": datetime.now(timezone.utc).isoformat(),
    }


class EventChannel:
    """Broadcasts events to every connected viewer WebSocket.

    No replay and no per-viewer affinity: a viewer that connects after an
    event fired never sees it.
    """

    def __init__(self):
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        logger.info("Viewer connected (%d total)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        logger.info("Viewer disconnected (%d total)", len(self._connections))

    async def publish(self, event: str, payload: Any = None) -> None:
        if event not in EVENT_NAMES:
            logger.warning("Publishing unregistered event %s", event)
        envelope = make_envelope(event, payload)
        async with self._lock:
            targets = list(self._connections)

        logger.debug("Emitting %s to %d viewers", event, len(targets))
        dead = []
        for conn in targets:
            try:
                await conn.send_json(envelope)
            except Exception as e:
                logger.error("Broadcast of %s failed, dropping viewer: %s", event, e)
                dead.append(conn)

        if dead:
            async with self._lock:
                self._connections = [c for c in self._connections if c not in dead]
