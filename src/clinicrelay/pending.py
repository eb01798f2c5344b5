"""Time-boxed rendezvous between a blocked provider webhook and the UI.

A webhook handler opens the slot and awaits the returned future. The UI's
answer (via ``resolve``) or the deadline timer settles it, whichever comes
first. Every opened request is settled exactly once.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PENDING_TIMEOUT_S = 60.0
DEFAULT_SCHEDULE_SELECTION = "the first available appointment slot"
DEFAULT_QUESTION_ANSWER = "The user did not provide an answer in time."


@dataclass
class PendingRequest:
    kind: str
    default: str
    timeout: float
    future: asyncio.Future
    awaiting_since: float = field(default_factory=time.time)
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def deadline(self) -> float:
        return self.awaiting_since + self.timeout

    @property
    def settled(self) -> bool:
        return self.future.done()

    def settle(self, value: str) -> bool:
        """Fulfil the future and stop the timer. False if already settled."""
        if self.future.done():
            return False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.future.set_result(value)
        return True


class PendingResponseSlot:
    """At most one outstanding ``PendingRequest`` per process."""

    def __init__(self):
        self._request: PendingRequest | None = None

    @property
    def is_open(self) -> bool:
        return self._request is not None and not self._request.settled

    @property
    def current(self) -> PendingRequest | None:
        return self._request if self.is_open else None

    def open(
        self,
        timeout: float = PENDING_TIMEOUT_S,
        default: str = DEFAULT_SCHEDULE_SELECTION,
        kind: str = "schedule",
    ) -> asyncio.Future:
        """Open a new slot and return the future its answer will land in.

        An outstanding request is superseded: it is settled with its own
        default so the webhook still blocked on it gets a reply.
        """
        previous = self._request
        if previous is not None and previous.settle(previous.default):
            logger.warning(
                "Superseding pending %s request opened at %.0f with its default",
                previous.kind,
                previous.awaiting_since,
            )

        loop = asyncio.get_running_loop()
        request = PendingRequest(
            kind=kind,
            default=default,
            timeout=timeout,
            future=loop.create_future(),
        )
        request._timer = loop.call_later(timeout, self._expire, request)
        self._request = request
        logger.info("Pending %s request opened (timeout %.0fs)", kind, timeout)
        return request.future

    def resolve(self, value: str) -> bool:
        """Hand ``value`` to the waiting webhook.

        Returns False when no request is open so the caller can fall back;
        a resolve arriving after the timeout fired is a no-op.
        """
        request = self._request
        if request is None or not request.settle(value):
            logger.info("No pending request to resolve")
            return False
        self._request = None
        logger.info("Pending %s request resolved", request.kind)
        return True

    def cancel(self) -> bool:
        """Settle the outstanding request with its default, if any."""
        request = self._request
        self._request = None
        if request is None or not request.settle(request.default):
            return False
        logger.info("Pending %s request cancelled with default", request.kind)
        return True

    def _expire(self, request: PendingRequest) -> None:
        request._timer = None
        if request.settle(request.default):
            logger.info("Pending %s request timed out after %.0fs", request.kind, request.timeout)
        if self._request is request:
            self._request = None
