"""Session storage for multi-turn conversation support."""
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from supabase import create_client, Client

from models.conversation import Session, Turn
from models.course import Course
from config import (
    SUPABASE_URL,
    SUPABASE_SERVICE_KEY,
    SESSION_TTL_SECONDS,
    MAX_SESSION_TURNS,
    CHAT_MESSAGES_TABLE,
)

logger = logging.getLogger(__name__)


class SessionStoreError(RuntimeError):
    """Raised when a persisted session cannot be read or written."""


class _TicketLock:
    """FIFO lock: holders are served in the order they took a ticket."""

    def __init__(self):
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self.users = 0  # holders + waiters, guarded by KeyedLock._guard

    def take_ticket(self) -> int:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            return ticket

    def wait_for(self, ticket: int) -> None:
        with self._cond:
            while self._serving != ticket:
                self._cond.wait()

    def release(self) -> None:
        with self._cond:
            self._serving += 1
            self._cond.notify_all()


class KeyedLock:
    """
    One FIFO lock per key.

    Tickets are handed out under a global guard, so requests for the same key
    run one at a time in arrival order. A key's lock is dropped once nobody
    holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, _TicketLock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = _TicketLock()
            lock.users += 1
            ticket = lock.take_ticket()

        try:
            lock.wait_for(ticket)
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                lock.users -= 1
                if lock.users == 0:
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class SessionStore(ABC):
    """
    Repository boundary for conversation memory.

    All reads and writes for one request should happen inside
    ``with store.session(session_id):`` so concurrent requests sharing a
    session id append their turns in arrival order.
    """

    def __init__(self):
        self._locks = KeyedLock()

    @contextmanager
    def session(self, session_id: str) -> Iterator[None]:
        with self._locks.hold(session_id):
            yield

    @abstractmethod
    def get_or_create(self, session_id: str) -> Session:
        """Return the session, creating an empty one for a new id."""

    @abstractmethod
    def append(self, session_id: str, turn: Turn) -> None:
        """Append a turn to an existing session."""

    def history(self, session_id: str, max_turns: int) -> List[Turn]:
        return self.get_or_create(session_id).recent(max_turns)


class InMemorySessionStore(SessionStore):
    """Process-local sessions with idle-TTL eviction. Lost on restart."""

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        max_turns: int = MAX_SESSION_TURNS,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__()
        self.ttl_seconds = ttl_seconds
        self.max_turns = max_turns
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._sessions_guard = threading.Lock()
        logger.info(f"InMemorySessionStore initialized (ttl={ttl_seconds}s, max_turns={max_turns})")

    def get_or_create(self, session_id: str) -> Session:
        now = self._clock()
        with self._sessions_guard:
            self._evict_expired(now)
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id=session_id, turns=[], created_at=datetime.now(), last_seen=now)
                self._sessions[session_id] = session
                logger.info(f"Created new session: {session_id}")
            session.last_seen = now
            return session

    def append(self, session_id: str, turn: Turn) -> None:
        with self._sessions_guard:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Unknown session: {session_id}")
            session.turns.append(turn)
            if self.max_turns and len(session.turns) > self.max_turns:
                del session.turns[:-self.max_turns]
            session.last_seen = self._clock()

    def get(self, session_id: str) -> Optional[Session]:
        with self._sessions_guard:
            return self._sessions.get(session_id)

    def __len__(self) -> int:
        with self._sessions_guard:
            return len(self._sessions)

    def _evict_expired(self, now: float) -> None:
        if not self.ttl_seconds:
            return
        expired = [sid for sid, s in self._sessions.items() if now - s.last_seen > self.ttl_seconds]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Evicted {len(expired)} idle sessions")


class SupabaseSessionStore(SessionStore):
    """Sessions persisted as rows of the chat_messages table."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_SERVICE_KEY,
        table_name: str = CHAT_MESSAGES_TABLE,
        client: Optional[Client] = None
    ):
        super().__init__()
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"SupabaseSessionStore initialized with table: {table_name}")

    def get_or_create(self, session_id: str) -> Session:
        # A session exists once it has a row; a new id simply has none yet
        try:
            result = (
                self.client.table(self.table_name)
                .select("role, content, course, created_at")
                .eq("session_id", session_id)
                .order("created_at", desc=False)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error retrieving session {session_id}: {e}")
            raise SessionStoreError(f"Failed to load session {session_id}: {e}") from e

        turns = [
            Turn(
                role=row["role"],
                content=row["content"],
                timestamp=self._parse_timestamp(row.get("created_at")),
                course=Course.from_row(row["course"]) if row.get("course") else None
            )
            for row in result.data or []
        ]

        created_at = turns[0].timestamp if turns else datetime.now()
        return Session(session_id=session_id, turns=turns, created_at=created_at)

    def append(self, session_id: str, turn: Turn) -> None:
        try:
            self.client.table(self.table_name).insert({
                "session_id": session_id,
                "role": turn.role,
                "content": turn.content,
                "course": turn.course.to_dict() if turn.course else None,
                "created_at": turn.timestamp.isoformat()
            }).execute()
        except Exception as e:
            logger.error(f"Error adding turn to session {session_id}: {e}")
            raise SessionStoreError(f"Failed to store turn for session {session_id}: {e}") from e

    @staticmethod
    def _parse_timestamp(timestamp_str: Optional[str]) -> datetime:
        """
        Parse a Supabase timestamp.

        Supabase can return more or fewer than six fractional digits, which
        ``fromisoformat`` rejects on older interpreters.
        """
        if not timestamp_str:
            return datetime.now()

        timestamp_str = timestamp_str.replace("Z", "+00:00")
        if "." in timestamp_str:
            head, tail = timestamp_str.split(".", 1)
            digits = len(tail) - len(tail.lstrip("0123456789"))
            fraction, tz = tail[:digits], tail[digits:]
            timestamp_str = f"{head}.{fraction[:6].ljust(6, '0')}{tz}"

        return datetime.fromisoformat(timestamp_str)
