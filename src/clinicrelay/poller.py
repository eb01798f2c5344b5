import asyncio
import logging
from typing import Awaitable, Callable

from clinicrelay.provider import ConversationClient
from clinicrelay.provider_events import (
    ENDED_STATUSES,
    ProviderEvent,
    call_ended,
    transcript_event_from_message,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 2.0


class TranscriptPoller:
    """Polls the provider conversation API and forwards new transcript lines.

    Telephony calls placed through the provider do not push transcript
    webhooks reliably, so while a call is up we read the conversation every
    couple of seconds and forward only the messages we have not seen yet,
    in order. One conversation is polled at a time.
    """

    def __init__(
        self,
        client: ConversationClient,
        on_event: Callable[[ProviderEvent], Awaitable[None]],
        interval: float = POLL_INTERVAL_S,
    ):
        self.client = client
        self.on_event = on_event
        self.interval = interval
        self.conversation_id: str | None = None
        self._seen = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, conversation_id: str) -> None:
        self.stop()
        logger.info("Starting transcript polling for %s", conversation_id)
        self.conversation_id = conversation_id
        self._seen = 0
        self._task = asyncio.create_task(self._run(conversation_id))

    def stop(self) -> None:
        task = self._task
        self._task = None
        self.conversation_id = None
        self._seen = 0
        if task is None or task.done():
            return
        logger.info("Stopping transcript polling")
        if task is not asyncio.current_task():
            task.cancel()

    async def _run(self, conversation_id: str) -> None:
        while True:
            finished = await self.poll_once(conversation_id)
            if finished:
                return
            await asyncio.sleep(self.interval)

    async def poll_once(self, conversation_id: str) -> bool:
        """Fetch the conversation once. Returns True when it has ended."""
        data = await self.client.get_conversation(conversation_id)
        if data is None:
            return False

        messages = data.get("transcript") or data.get("messages") or []
        new = messages[self._seen:]
        self._seen = len(messages)
        for message in new:
            event = transcript_event_from_message(message)
            if event is not None:
                await self.on_event(event)

        status = str(data.get("status", "")).lower()
        if status in ENDED_STATUSES:
            logger.info("Conversation %s finished with status %s", conversation_id, status)
            await self.on_event(call_ended(status))
            return True
        return False
