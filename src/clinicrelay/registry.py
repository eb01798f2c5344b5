import logging

from clinicrelay.session import CallSession

logger = logging.getLogger(__name__)


class ActiveCallRegistry:
    """Single-slot store for the call currently in flight.

    Only the orchestrator writes to it. Overwriting a live session is a
    known simplification: it is logged loudly rather than merged.
    """

    def __init__(self):
        self._session: CallSession | None = None

    def set(self, session: CallSession) -> None:
        current = self._session
        if current is not None and current.id != session.id:
            if current.state.is_terminal:
                logger.info("Replacing ended call %s with %s", current.id, session.id)
            else:
                logger.warning(
                    "Overwriting in-flight call %s (state=%s) with %s",
                    current.id,
                    current.state.value,
                    session.id,
                )
        self._session = session

    def get(self) -> CallSession | None:
        return self._session

    def clear(self) -> None:
        if self._session is not None:
            logger.info("Clearing call %s from registry", self._session.id)
        self._session = None
