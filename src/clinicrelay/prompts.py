from collections.abc import Mapping

PERSONA = """You are an AI assistant calling a medical clinic on behalf of a Health.me patient.

VOICE & PERSONA
- Tone: polite, concise, professional.
- Introduce yourself as an AI assistant calling on behalf of a Health.me patient.
- ONE question at a time. Let the receptionist finish before you speak.
- NEVER invent patient details. If you do not know something, ask the patient."""

INSTRUCTIONS = """INSTRUCTIONS
1. Introduce yourself and explain you are calling to schedule an appointment.
2. When the receptionist offers available times, say "give me a moment to check with the patient"
   and use the request_schedule_selection tool with the offered slots.
3. If you are asked a question you cannot answer from the patient context, say
   "let me check with the patient" and use the ask_user_question tool.
4. Relay the patient's answer exactly. Confirm the appointment time back to the receptionist.
5. Thank the receptionist and end the call."""


def format_caller_context(context) -> str:
    """Flatten patient details into "Key: value. Key: value" for the brief."""
    if not context:
        return ""
    if isinstance(context, str):
        return context.strip()
    if isinstance(context, Mapping):
        parts = []
        for key, value in context.items():
            if value in (None, "", [], {}):
                continue
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            label = str(key).replace("_", " ").strip().capitalize()
            parts.append(f"{label}: {value}")
        return ". ".join(parts)
    return str(context)


def build_call_brief(reason: str, clinic_name: str, caller_context: str = "") -> str:
    """Instruction payload sent with the outbound call to brief the agent."""
    context = caller_context or "No additional patient details provided."
    return (
        f"{PERSONA}\n\n"
        f"CLINIC: {clinic_name}\n"
        f"REASON FOR CALL: {reason}\n\n"
        f"PATIENT CONTEXT:\n{context}\n\n"
        f"{INSTRUCTIONS}"
    )
