import logging
import sys
import time

import pytest
import uvicorn
from clinicrelay import app as app_module
from clinicrelay.app import _InterceptHandler, _status_poll_filter, configure_logging, create_app, main
from clinicrelay.config import Settings
from clinicrelay.events import EventChannel
from clinicrelay.orchestrator import CallOrchestrator
from fastapi.testclient import TestClient


class TestStatusPollFilter:
    def test_suppresses_status_polling_access_lines(self):
        record = {
            "name": "clinicrelay.app",
            "extra": {"logger_name": "uvicorn.access"},
            "message": '127.0.0.1:50000 - "GET /call/status HTTP/1.1" 200',
        }
        assert _status_poll_filter(record) is False

    def test_allows_other_access_lines(self):
        record = {
            "name": "clinicrelay.app",
            "extra": {"logger_name": "uvicorn.access"},
            "message": '127.0.0.1:50000 - "POST /call/respond HTTP/1.1" 200',
        }
        assert _status_poll_filter(record) is True

    def test_allows_status_text_from_other_modules(self):
        record = {"name": "clinicrelay.api", "message": "GET /call/status"}
        assert _status_poll_filter(record) is True


@pytest.fixture
def restore_logging():
    names = ("", "uvicorn", "uvicorn.error", "uvicorn.access")
    saved = {name: (logging.getLogger(name).handlers[:], logging.getLogger(name).propagate) for name in names}
    root_level = logging.getLogger().level
    yield
    for name, (handlers, propagate) in saved.items():
        std = logging.getLogger(name)
        std.handlers = handlers
        std.propagate = propagate
    logging.getLogger().setLevel(root_level)
    app_module.logger.remove()
    app_module.logger.add(sys.stderr)


class TestLoggingSetup:
    def test_uvicorn_loggers_go_through_intercept(self, restore_logging):
        configure_logging("INFO")
        # uvicorn configures its own logging at startup, log_config=None leaves ours alone
        uvicorn.Config("clinicrelay.app:create_app", factory=True, log_config=None).configure_logging()
        handlers = logging.getLogger("uvicorn.access").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], _InterceptHandler)

    def test_main_runs_uvicorn_without_log_config(self, monkeypatch):
        runs = []
        monkeypatch.setattr(app_module, "load_dotenv", lambda: None)
        monkeypatch.setattr(app_module, "configure_logging", lambda level: None)
        monkeypatch.setattr(app_module.uvicorn, "run", lambda *args, **kwargs: runs.append((args, kwargs)))
        monkeypatch.setenv("PORT", "4010")
        main()
        args, kwargs = runs[0]
        assert args == ("clinicrelay.app:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 4010
        assert kwargs["log_config"] is None


def test_injected_dependencies_on_state(orchestrator):
    channel = EventChannel()
    settings = Settings()
    app = create_app(orchestrator=orchestrator, settings=settings, channel=channel)
    assert app.state.orchestrator is orchestrator
    assert app.state.settings is settings
    assert app.state.events is channel


def test_unconfigured_app_disables_calls():
    app = create_app(settings=Settings(transcript_polling=False))
    assert app.state.orchestrator.client is None


def test_viewer_receives_published_events(provider):
    channel = EventChannel()
    orchestrator = CallOrchestrator(sink=channel, client=provider)
    app = create_app(orchestrator=orchestrator, settings=Settings(), channel=channel)

    with TestClient(app) as client:
        with client.websocket_connect("/ws/events") as ws:
            for _ in range(100):
                if channel.connection_count:
                    break
                time.sleep(0.01)
            client.post("/call/initiate", json={"phone": "+15550000", "clinic_name": "City Clinic"})
            message = ws.receive_json()
    assert message["event"] == "call_started"
    assert message["data"]["clinic"] == "City Clinic"
