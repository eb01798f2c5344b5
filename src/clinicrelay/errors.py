"""Exceptions raised by the call-relay orchestrator.

Routes translate these into JSON error bodies; see ``clinicrelay.api``.
"""


class CallRelayError(Exception):
    """Base class for orchestrator failures."""


class ProviderError(CallRelayError):
    """The call provider rejected or failed an outbound-call request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CallAlreadyActiveError(CallRelayError):
    """A call is already in flight; only one session may exist at a time."""

    def __init__(self, call_id: str):
        super().__init__(f"Call {call_id} is already in progress")
        self.call_id = call_id


class CallStateError(CallRelayError):
    """The requested operation is not allowed in the session's current state."""


class CallsDisabledError(CallRelayError):
    """Outbound calling is disabled because provider configuration is missing."""
