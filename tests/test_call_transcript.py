import sys
import os

import httpx
import pytest
import respx

# Add scripts to path so we can import the module
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
from call_transcript import fetch_status, format_transcript


def make_snapshot(**overrides):
    snapshot = {
        "id": "call_abc123",
        "state": "ended",
        "clinic": "City Clinic",
        "end_reason": "completed",
        "transcript": [
            {"speaker": "Agent", "text": "Hi, calling for a patient.", "timestamp": 1000.0},
            {"speaker": "Receptionist", "text": "Sure.", "timestamp": 1002.5},
        ],
    }
    snapshot.update(overrides)
    return snapshot


class TestFormatTranscript:
    def test_no_active_call(self):
        assert format_transcript({"status": "no_active_call"}) == "No active call."

    def test_header_and_relative_times(self):
        result = format_transcript(make_snapshot())
        assert "Call: call_abc123" in result
        assert "Clinic: City Clinic" in result
        assert "Ended: completed" in result
        assert "[   0.0s] Agent: Hi, calling for a patient." in result
        assert "[   2.5s] Receptionist: Sure." in result

    def test_gap_marker(self):
        snapshot = make_snapshot(transcript=[
            {"speaker": "Agent", "text": "One moment.", "timestamp": 1000.0},
            {"speaker": "Agent", "text": "Thanks for waiting.", "timestamp": 1020.0},
        ])
        result = format_transcript(snapshot, gap_threshold=5.0)
        assert "20.0s gap" in result

    def test_no_gap_marker_under_threshold(self):
        assert "gap" not in format_transcript(make_snapshot(), gap_threshold=5.0)

    def test_empty_transcript(self):
        result = format_transcript(make_snapshot(transcript=[], state="active", end_reason=None))
        assert "(no transcript yet)" in result
        assert "Ended" not in result


def test_fetch_status():
    with respx.mock:
        respx.get("http://relay.local:3001/call/status").mock(
            return_value=httpx.Response(200, json={"status": "no_active_call"})
        )
        assert fetch_status("http://relay.local:3001/") == {"status": "no_active_call"}


def test_fetch_status_error():
    with respx.mock:
        respx.get("http://relay.local:3001/call/status").mock(return_value=httpx.Response(500))
        with pytest.raises(httpx.HTTPStatusError):
            fetch_status("http://relay.local:3001")
