from clinicrelay.transcript import Speaker, TranscriptLine, to_json_array, to_plain_text


class TestSpeakerFromLabel:
    def test_agent_labels(self):
        assert Speaker.from_label("agent") is Speaker.AGENT
        assert Speaker.from_label("bot") is Speaker.AGENT
        assert Speaker.from_label("Agent") is Speaker.AGENT

    def test_clinic_side_labels(self):
        # The provider calls the person on the phone "user"
        assert Speaker.from_label("user") is Speaker.RECEPTIONIST
        assert Speaker.from_label("receptionist") is Speaker.RECEPTIONIST

    def test_unknown_label(self):
        assert Speaker.from_label("narrator") is Speaker.UNKNOWN
        assert Speaker.from_label(None) is Speaker.UNKNOWN


class TestToPlainText:
    def test_basic_conversation(self):
        lines = [
            TranscriptLine(Speaker.AGENT, "Hi, I'm calling for a patient."),
            TranscriptLine(Speaker.RECEPTIONIST, "Sure, how can I help?"),
        ]
        assert to_plain_text(lines) == (
            "Agent: Hi, I'm calling for a patient.\n"
            "Receptionist: Sure, how can I help?"
        )

    def test_empty(self):
        assert to_plain_text([]) == ""


class TestToJsonArray:
    def test_preserves_order_and_fields(self):
        lines = [
            TranscriptLine(Speaker.AGENT, "A", timestamp=1000.0),
            TranscriptLine(Speaker.UNKNOWN, "B", timestamp=1001.0),
        ]
        result = to_json_array(lines)
        assert result == [
            {"speaker": "Agent", "text": "A", "timestamp": 1000.0},
            {"speaker": "Unknown", "text": "B", "timestamp": 1001.0},
        ]

    def test_empty(self):
        assert to_json_array([]) == []


def test_equality_ignores_timestamp():
    assert TranscriptLine(Speaker.AGENT, "A", 1.0) == TranscriptLine(Speaker.AGENT, "A", 2.0)
