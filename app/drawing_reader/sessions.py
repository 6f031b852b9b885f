"""
In-memory registry of extraction sessions.

Each session owns one ExtractionController. Sessions live only as long as
the process; nothing is persisted. The registry holds at most
`max_sessions` sessions and evicts the oldest when a new one is created.
"""

import logging
import uuid

from .services.preview import PreviewStore
from .state import ExtractionController, ExtractionState, Extractor

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 100


class SessionNotFound(Exception):
    """Raised when a session id is unknown."""


class SessionRegistry:
    """Creates, looks up and removes session controllers."""

    def __init__(
        self,
        extractor: Extractor,
        previews: PreviewStore | None = None,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._extractor = extractor
        self.previews = previews if previews is not None else PreviewStore()
        self.max_sessions = max_sessions
        # Insertion order is creation order; the first key is the oldest session
        self._sessions: dict[str, ExtractionController] = {}

    def create(self) -> tuple[str, ExtractionController]:
        """Start a new session in the IDLE state, evicting the oldest if full."""
        while len(self._sessions) >= self.max_sessions:
            oldest = next(iter(self._sessions))
            logger.info("Session limit %d reached; evicting session %s", self.max_sessions, oldest)
            self.remove(oldest)

        session_id = uuid.uuid4().hex
        controller = ExtractionController(self._extractor, self.previews)
        controller.subscribe(_log_transition(session_id))
        self._sessions[session_id] = controller
        logger.info("Created session %s", session_id)
        return session_id, controller

    def get(self, session_id: str) -> ExtractionController:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(f"Session {session_id} not found") from None

    def remove(self, session_id: str) -> None:
        """Drop a session, releasing its preview first."""
        controller = self.get(session_id)
        controller.reset()
        del self._sessions[session_id]
        logger.info("Removed session %s", session_id)

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


def _log_transition(session_id: str):
    def log(state: ExtractionState) -> None:
        logger.info(
            "Session %s -> %s (generation %d)",
            session_id,
            state.state.value,
            state.generation,
        )

    return log
