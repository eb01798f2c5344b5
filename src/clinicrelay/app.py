import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from clinicrelay.api import router as call_router
from clinicrelay.config import Settings, load_settings, validate_config
from clinicrelay.events import EventChannel
from clinicrelay.orchestrator import CallOrchestrator
from clinicrelay.provider import ConversationClient


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records (ours and uvicorn's) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(logger_name=record.name).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def _status_poll_filter(record) -> bool:
    """Drop uvicorn access lines for the UI's /call/status polling."""
    name = record.get("extra", {}).get("logger_name", record["name"])
    if name == "uvicorn.access" and "GET /call/status" in record["message"]:
        return False
    return True


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, filter=_status_poll_filter)
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        std = logging.getLogger(name)
        std.handlers = [_InterceptHandler()]
        std.propagate = False


def build_orchestrator(settings: Settings, channel: EventChannel) -> CallOrchestrator:
    client = None
    if validate_config(settings):
        client = ConversationClient(
            api_key=settings.elevenlabs_api_key,
            agent_id=settings.elevenlabs_agent_id,
            phone_number_id=settings.elevenlabs_phone_number_id,
            base_url=settings.elevenlabs_base_url,
        )
    return CallOrchestrator(
        sink=channel,
        client=client,
        pending_timeout=settings.pending_timeout_s,
        poll_interval=settings.transcript_poll_interval_s if settings.transcript_polling else None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Call relay ready (calls enabled: {})", app.state.orchestrator.client is not None)
    yield
    await app.state.orchestrator.shutdown()
    logger.info("Call relay stopped")


def create_app(
    orchestrator: CallOrchestrator | None = None,
    settings: Settings | None = None,
    channel: EventChannel | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    channel = channel or EventChannel()
    if orchestrator is None:
        orchestrator = build_orchestrator(settings, channel)

    app = FastAPI(title="Health.me Call Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.events = channel
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(call_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.websocket("/ws/events")
    async def events_websocket(websocket: WebSocket):
        """Viewer channel. Viewers only listen; inbound text is ignored."""
        await channel.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await channel.disconnect(websocket)

    return app


def main() -> None:
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    port = int(os.getenv("PORT", "3001"))
    # log_config=None keeps uvicorn from replacing the intercept handlers
    uvicorn.run("clinicrelay.app:create_app", factory=True, host="0.0.0.0", port=port, log_config=None)


if __name__ == "__main__":
    main()
