"""
In-memory session store.

Holds per-session conversation history and derived attributes. Sessions are
keyed by the transport's session id (call sid for voice, the chat address,
or ``sms:<number>``). Retention and expiry are left to the deployment.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from config.constants import PERSONA_ATTRIBUTE
from core.exceptions import SessionNotFoundError
from core.interfaces import SessionStore
from core.types import Channel, FunctionCall, Role, Turn

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Conversation state for one (channel, counterpart) pair."""
    id: str
    channel: Channel
    history: list[Turn] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.updated_at = time.time()


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.

    Features:
    - Idempotent session creation (channel fixed at creation)
    - Append-only history, copies returned to callers
    - Optional trimming of the oldest cycles
    - Lazily created per-session asyncio locks, released on close
    """

    def __init__(self, max_history_turns: int = 0):
        """
        Initialize the store.

        Args:
            max_history_turns: Keep at most this many turns per session
                (0 keeps everything)
        """
        self.max_history_turns = max_history_turns
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def init_session(self, session_id: str, channel: Channel) -> None:
        if session_id in self._sessions:
            return
        self._sessions[session_id] = Session(id=session_id, channel=Channel(channel))
        logger.info(f"[SESSIONS] Created session {session_id} ({Channel(channel).value})")

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    async def get_history(self, session_id: str) -> list[Turn]:
        return list(self._get(session_id).history)

    async def add_to_history(self, session_id: str, role: Role, text: str) -> None:
        session = self._get(session_id)
        role = Role(role)
        if role == Role.USER:
            # A user turn opens a cycle; older cycles may go, never the current one
            self._trim(session)
        session.history.append(Turn(role=role, text=text))
        session.touch()

    async def add_function_interaction(
        self, session_id: str, call: FunctionCall, result: Any
    ) -> None:
        session = self._get(session_id)
        session.history.append(Turn(role=Role.MODEL, function_call=call))
        session.history.append(
            Turn(role=Role.FUNCTION, function_name=call.name, function_result=result)
        )
        session.touch()

    async def get_attribute(self, session_id: str) -> Optional[str]:
        return self._get(session_id).attributes.get(PERSONA_ATTRIBUTE)

    async def set_attribute(self, session_id: str, value: str) -> None:
        session = self._get(session_id)
        previous = session.attributes.get(PERSONA_ATTRIBUTE)
        session.attributes[PERSONA_ATTRIBUTE] = value
        session.touch()
        if previous != value:
            logger.info(f"[SESSIONS] {session_id} persona: {previous} -> {value}")

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _trim(self, session: Session) -> None:
        """
        Drop the oldest turns before a new user turn is appended.

        Runs only at the start of a cycle and always cuts at a user turn, so
        the kept history opens with a user message and tool pairs stay whole.
        """
        if not self.max_history_turns:
            return
        # Leave room for the user turn about to be appended
        excess = len(session.history) + 1 - self.max_history_turns
        if excess <= 0:
            return
        while excess < len(session.history) and session.history[excess].role != Role.USER:
            excess += 1
        del session.history[:excess]
        logger.debug(f"[SESSIONS] Trimmed {session.id} to {len(session.history)} turns")

    async def close_session(self, session_id: str) -> None:
        """Forget a finished session and its lock."""
        self._sessions.pop(session_id, None)
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]
        logger.info(f"[SESSIONS] Closed session {session_id}")

    def session_count(self) -> int:
        return len(self._sessions)
