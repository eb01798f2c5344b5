from clinicrelay.prompts import PERSONA, build_call_brief, format_caller_context


class TestFormatCallerContext:
    def test_empty(self):
        assert format_caller_context(None) == ""
        assert format_caller_context({}) == ""

    def test_string_passes_through(self):
        assert format_caller_context("  Dana, 34, penicillin allergy ") == "Dana, 34, penicillin allergy"

    def test_mapping_flattened(self):
        context = {"name": "Dana", "date_of_birth": "1990-03-03", "allergies": ["penicillin", "latex"], "notes": ""}
        assert format_caller_context(context) == (
            "Name: Dana. Date of birth: 1990-03-03. Allergies: penicillin, latex"
        )


class TestBuildCallBrief:
    def test_includes_reason_and_clinic(self):
        brief = build_call_brief("sore throat", "City Clinic", "Name: Dana")
        assert brief.startswith(PERSONA)
        assert "CLINIC: City Clinic" in brief
        assert "REASON FOR CALL: sore throat" in brief
        assert "Name: Dana" in brief

    def test_mentions_hand_off_tools(self):
        brief = build_call_brief("checkup", "City Clinic")
        assert "request_schedule_selection" in brief
        assert "ask_user_question" in brief

    def test_no_context_placeholder(self):
        brief = build_call_brief("checkup", "City Clinic")
        assert "No additional patient details provided." in brief
