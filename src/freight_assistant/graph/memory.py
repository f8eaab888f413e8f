"""
memory.py
---------
In-process conversation memory.

`SessionManager` keeps every session's full history in a dict keyed by session
id. Only the view handed to the prompt is windowed; stored history is never
truncated. Sessions idle for longer than `max_session_age` are treated as new
on the next access and are removed by `cleanup_expired_sessions`, which the app
runs on a timer via `run_cleanup_loop`.

Nothing here survives a process restart.
"""
from __future__ import annotations

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import structlog

from ..models import Message, utcnow

logger = structlog.get_logger(__name__)

DEFAULT_MAX_SESSION_AGE = timedelta(hours=24)
DEFAULT_WINDOW_SIZE = 10


@dataclass
class Session:
    session_id: str
    last_updated: datetime
    conversation_window_size: int
    history: List[Message] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


@dataclass(frozen=True)
class SessionHandle:
    session_id: str
    history: List[Message]


class SessionManager:
    def __init__(
        self,
        max_session_age: timedelta = DEFAULT_MAX_SESSION_AGE,
        default_window_size: int = DEFAULT_WINDOW_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.max_session_age = max_session_age
        self.default_window_size = default_window_size if default_window_size > 0 else DEFAULT_WINDOW_SIZE
        self.clock = clock
        self._sessions: Dict[str, Session] = {}
        # Guards the dict itself; per-session mutation takes the session's own lock.
        self._lock = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return str(uuid.uuid4())

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_updated > self.max_session_age

    def _touch(self, session_id: Optional[str]) -> Session:
        """Return a live session for `session_id`, (re)creating it when missing or expired."""
        sid = session_id or self.new_session_id()
        now = self.clock()
        with self._lock:
            session = self._sessions.get(sid)
            if session is None or self._expired(session, now):
                if session is not None:
                    logger.info("session_expired", session_id=sid)
                session = Session(
                    session_id=sid,
                    last_updated=now,
                    conversation_window_size=self.default_window_size,
                )
                self._sessions[sid] = session
            else:
                session.last_updated = now
            return session

    def _live(self, session_id: str) -> Optional[Session]:
        """The stored session, or None when it is missing or already past its age."""
        now = self.clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or self._expired(session, now):
                return None
            return session

    def is_session_expired(self, session_id: str) -> bool:
        return self._live(session_id) is None

    def get_or_create_session(self, session_id: Optional[str] = None) -> SessionHandle:
        session = self._touch(session_id)
        with session.lock:
            return SessionHandle(session_id=session.session_id, history=list(session.history))

    def add_message(self, session_id: str, message: Message) -> None:
        """Append to the full history; `Message` stamps its own timestamp when none is given."""
        session = self._touch(session_id)
        with session.lock:
            session.history.append(message)
            session.last_updated = self.clock()

    def get_formatted_history(self, session_id: str, window_override: Optional[int] = None) -> List[Message]:
        """
        Last N messages in original order, where N is `window_override`, else the
        session's window size, else the process default.
        """
        session = self._touch(session_id)
        window = (
            window_override
            if window_override and window_override > 0
            else session.conversation_window_size or self.default_window_size
        )
        with session.lock:
            return list(session.history[-window:])

    def get_full_history(self, session_id: str) -> List[Message]:
        session = self._touch(session_id)
        with session.lock:
            return list(session.history)

    def set_conversation_window_size(self, session_id: str, window_size: int) -> bool:
        """Set a per-session window. Ignored for unknown or expired sessions and sizes below 1."""
        if window_size < 1:
            return False
        session = self._live(session_id)
        if session is None:
            return False
        with session.lock:
            session.conversation_window_size = window_size
        return True

    def get_conversation_window_size(self, session_id: str) -> int:
        session = self._live(session_id)
        if session is None:
            return self.default_window_size
        return session.conversation_window_size or self.default_window_size

    def set_default_window_size(self, window_size: int) -> None:
        """Applies to sessions created from now on; non-positive sizes are ignored."""
        if window_size > 0:
            self.default_window_size = window_size

    def cleanup_expired_sessions(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("expired_sessions_removed", count=len(expired), remaining=len(self._sessions))
        return len(expired)

    async def run_cleanup_loop(self, interval_seconds: float = 3600.0) -> None:
        """Sweep expired sessions every `interval_seconds` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.cleanup_expired_sessions()
