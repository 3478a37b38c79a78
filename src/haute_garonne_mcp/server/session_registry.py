from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class RegisteredSession(Protocol):
    """What the dispatcher needs from a live session."""

    @property
    def session_id(self) -> str: ...

    @property
    def created_at(self) -> datetime: ...

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None: ...


class SessionRegistry:
    """Process-wide map from session id to live streaming session.

    Entries are added when a stream opens and removed when it closes or
    fails. None of the methods await, so a lookup never observes a
    half-applied insert or removal.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, RegisteredSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def insert(self, session: RegisteredSession) -> None:
        if session.session_id in self._sessions:
            raise ValueError(f"Session {session.session_id} is already registered")
        self._sessions[session.session_id] = session
        logger.debug(f"Registered session {session.session_id} ({len(self._sessions)} active)")

    def get(self, session_id: str) -> RegisteredSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        """Forget a session. Removing an unknown id is a no-op that returns False."""
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.debug(f"Removed session {session_id} ({len(self._sessions)} active)")
        return removed

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def sole_session_id(self) -> str | None:
        """The id of the only live session, or None when there are zero or several."""
        if len(self._sessions) != 1:
            return None
        return next(iter(self._sessions))

    def clear(self) -> None:
        """Drop every entry. Only used at application shutdown."""
        if self._sessions:
            logger.info(f"Dropping {len(self._sessions)} sessions on shutdown")
        self._sessions.clear()
