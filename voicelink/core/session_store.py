from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from voicelink.core.errors import NotFoundError, SessionStateError

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 5 * 60  # seconds


class SessionStatus(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


# Only a processed upload completes; any non-terminal state may fail.
_TRANSITIONS = {
    SessionStatus.WAITING: {SessionStatus.PROCESSING, SessionStatus.ERROR},
    SessionStatus.PROCESSING: {SessionStatus.COMPLETED, SessionStatus.ERROR},
    SessionStatus.COMPLETED: set(),
    SessionStatus.ERROR: set(),
}


@dataclass
class Session:
    id: str
    created_at: float
    status: SessionStatus = SessionStatus.WAITING
    result: str | None = None
    error: str | None = None
    audio_data: bytes | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def age(self, now: float) -> float:
        return now - self.created_at

    def snapshot(self) -> dict:
        return {
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
        }


class SessionStore:
    """In-memory registry of voice capture sessions.

    The store is the only owner of ``Session`` objects; callers look
    sessions up by id on every access.  All mutators run synchronously,
    so on a single asyncio loop every read-then-branch sequence is atomic
    with respect to other requests.
    """

    def __init__(
        self,
        max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._max_age = max_age
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def ids(self) -> list[str]:
        return list(self._sessions.keys())

    def create(self) -> str:
        session_id = str(uuid.uuid4())
        while session_id in self._sessions:
            session_id = str(uuid.uuid4())
        self._sessions[session_id] = Session(id=session_id, created_at=self._clock())
        logger.debug("Created session %s", session_id)
        return session_id

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def sweep(self, max_age: float | None = None) -> int:
        """Remove every session older than *max_age* seconds, whatever its status."""
        threshold = self._max_age if max_age is None else max_age
        now = self._clock()
        expired = [
            sid for sid, s in self._sessions.items() if s.age(now) > threshold
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        else:
            logger.debug("Sweep found no expired sessions")
        return len(expired)

    # -- Mutators -----------------------------------------------------------

    def begin_processing(self, session_id: str) -> Session:
        return self._advance(session_id, SessionStatus.PROCESSING)

    def attach_audio(self, session_id: str, audio: bytes) -> None:
        session = self._require(session_id)
        if session.status is not SessionStatus.PROCESSING:
            raise SessionStateError(
                f"Cannot attach audio to a session in '{session.status.value}' state"
            )
        session.audio_data = audio

    def complete(self, session_id: str, text: str) -> Session:
        session = self._advance(session_id, SessionStatus.COMPLETED)
        session.result = text
        return session

    def fail(self, session_id: str, message: str) -> Session:
        session = self._advance(session_id, SessionStatus.ERROR)
        session.error = message
        return session

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(session_id)
        return session

    def _advance(self, session_id: str, status: SessionStatus) -> Session:
        session = self._require(session_id)
        if status not in _TRANSITIONS[session.status]:
            raise SessionStateError(
                f"Cannot move session from {session.status.value} to {status.value}"
            )
        session.status = status
        if status.is_terminal:
            session.audio_data = None
        return session
