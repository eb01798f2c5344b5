from datetime import date
from unittest.mock import AsyncMock

import pytest
from clinicrelay.orchestrator import CallOrchestrator
from clinicrelay.provider import OutboundCall
from clinicrelay.session import CallSession

# A Monday: tomorrow is Tue 20, the day after is Wed 21
FIXED_TODAY = date(2026, 10, 19)


class RecordingSink:
    """Event sink that keeps every published event in order."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []

    async def publish(self, event, payload=None):
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, event: str) -> list:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def today():
    return FIXED_TODAY


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def provider():
    client = AsyncMock()
    client.start_outbound_call.return_value = OutboundCall(conversation_id="conv_123", call_sid="CA_abc")
    client.send_user_message.return_value = True
    client.get_conversation.return_value = None
    return client


@pytest.fixture
def orchestrator(sink, provider):
    return CallOrchestrator(
        sink=sink,
        client=provider,
        pending_timeout=0.2,
        today=lambda: FIXED_TODAY,
    )


@pytest.fixture
def session():
    return CallSession(target_phone="+15550000", clinic_name="City Clinic", reason="sore throat")
