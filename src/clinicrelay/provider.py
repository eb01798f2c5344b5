import httpx
import logging
from dataclasses import dataclass

from clinicrelay.circuit_breaker import CircuitBreaker
from clinicrelay.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
OUTBOUND_CALL_PATH = "/v1/convai/twilio/outbound-call"
CONVERSATION_PATH = "/v1/convai/conversations/{conversation_id}"
SEND_MESSAGE_PATH = "/v1/convai/conversations/{conversation_id}/messages"


@dataclass
class OutboundCall:
    conversation_id: str
    call_sid: str = ""
    message: str = ""


class ConversationClient:
    """HTTP client for the conversational-voice provider.

    ``start_outbound_call`` raises ``ProviderError`` on any failure so the
    orchestrator can end the session and report it. The best-effort calls
    (fallback message send, transcript polling) each go through their own circuit
    breaker and degrade to False/None instead.
    """

    def __init__(
        self,
        api_key: str,
        agent_id: str,
        phone_number_id: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.agent_id = agent_id
        self.phone_number_id = phone_number_id
        self.timeout = timeout
        # Failed polls never block message sends
        self._poll_circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="conversation polling",
        )
        self._send_circuit = CircuitBreaker(
            failure_threshold=3,
            cooldown_seconds=60.0,
            label="message send",
        )
        if client is not None:
            self._client = client
        else:
            headers = {"Content-Type": "application/json"}
            if api_key:
                headers["xi-api-key"] = api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )

    async def close(self):
        """Close the shared HTTP client. Call at shutdown."""
        await self._client.aclose()

    async def start_outbound_call(
        self,
        to_number: str,
        brief: str,
        dynamic_variables: dict | None = None,
    ) -> OutboundCall:
        payload = {
            "agent_id": self.agent_id,
            "agent_phone_number_id": self.phone_number_id,
            "to_number": to_number,
            "conversation_initiation_client_data": {
                "conversation_config_override": {
                    "agent": {"prompt": {"prompt": brief}},
                },
                "dynamic_variables": dynamic_variables or {},
            },
        }
        try:
            resp = await self._client.post(OUTBOUND_CALL_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error("Outbound call request failed: %s", e)
            raise ProviderError(f"Call provider unreachable: {e}") from e

        if resp.status_code >= 400:
            logger.error("Outbound call rejected (%d): %s", resp.status_code, resp.text)
            raise ProviderError(
                f"Call provider error {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError("Call provider returned a non-JSON body", resp.status_code) from e

        if data.get("success") is False:
            message = data.get("message") or "call not accepted"
            logger.error("Outbound call not accepted: %s", message)
            raise ProviderError(f"Call provider error: {message}", status_code=resp.status_code)

        conversation_id = data.get("conversation_id")
        if not conversation_id:
            raise ProviderError("Call provider response has no conversation_id", resp.status_code)

        return OutboundCall(
            conversation_id=conversation_id,
            call_sid=data.get("callSid") or data.get("call_sid") or "",
            message=data.get("message", ""),
        )

    async def send_user_message(self, conversation_id: str, text: str) -> bool:
        if not self._send_circuit.should_try():
            logger.warning("Provider circuit breaker open, not sending message")
            return False
        try:
            resp = await self._client.post(
                SEND_MESSAGE_PATH.format(conversation_id=conversation_id),
                json={"type": "user_message", "text": text},
            )
            resp.raise_for_status()
            self._send_circuit.record_success()
            return True
        except Exception as e:
            self._send_circuit.record_failure()
            logger.error("send_user_message failed: %s", e)
            return False

    async def get_conversation(self, conversation_id: str) -> dict | None:
        if not self._poll_circuit.should_try():
            logger.warning("Provider circuit breaker open, skipping conversation fetch")
            return None
        try:
            resp = await self._client.get(CONVERSATION_PATH.format(conversation_id=conversation_id))
            resp.raise_for_status()
            self._poll_circuit.record_success()
            return resp.json()
        except Exception as e:
            self._poll_circuit.record_failure()
            logger.error("get_conversation failed: %s", e)
            return None
