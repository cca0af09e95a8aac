"""In-memory session store.

Provides an in-memory implementation of ISessionStore with per-conversation
locking. One instance is created at startup and injected into the engine.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncContextManager, AsyncIterator, Callable, Dict, Optional

import structlog

from platebot.domain.conversation.session import ConversationState, EditCursor, Session
from platebot.domain.meal.recognition.models import PlateAnalysis

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def is_held(self, key: str) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)


class InMemorySessionStore:
    """
    In-memory implementation of ISessionStore port.

    Persistence: Data lost on process restart (in-memory only)
    Concurrency: callers serialize per conversation with ``lock(id)``;
    PlateAnalysis values are immutable so returned objects are safe to share.

    Example:
        >>> store = InMemorySessionStore()
        >>> async with store.lock("5511999990000"):
        ...     await store.set_pending("5511999990000", analysis)
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize store with empty storage."""
        self._sessions: Dict[str, Session] = {}
        self._locks = KeyedLock()
        self._clock = clock

    def lock(self, conversation_id: str) -> AsyncContextManager[None]:
        """Async context manager serializing work on one conversation."""
        return self._locks.hold(conversation_id)

    def _touch(self, conversation_id: str) -> Session:
        session = self._sessions.get(conversation_id)
        if session is None:
            session = Session()
            self._sessions[conversation_id] = session
        session.updated_at = self._clock()
        return session

    def _drop_if_empty(self, conversation_id: str) -> None:
        session = self._sessions.get(conversation_id)
        if session is not None and session.is_empty():
            del self._sessions[conversation_id]

    async def get_pending(self, conversation_id: str) -> Optional[PlateAnalysis]:
        session = self._sessions.get(conversation_id)
        return session.pending_analysis if session else None

    async def set_pending(self, conversation_id: str, analysis: PlateAnalysis) -> None:
        """Replace the pending analysis; any in-progress edit is discarded."""
        session = self._touch(conversation_id)
        session.pending_analysis = analysis
        session.edit_cursor = None

    async def get_edit_cursor(self, conversation_id: str) -> Optional[EditCursor]:
        session = self._sessions.get(conversation_id)
        return session.edit_cursor if session else None

    async def set_edit_cursor(self, conversation_id: str, cursor: EditCursor) -> None:
        session = self._touch(conversation_id)
        session.edit_cursor = cursor

    async def clear_edit_cursor(self, conversation_id: str) -> None:
        session = self._sessions.get(conversation_id)
        if session is None:
            return
        session.edit_cursor = None
        session.updated_at = self._clock()
        self._drop_if_empty(conversation_id)

    async def clear(self, conversation_id: str) -> None:
        self._sessions.pop(conversation_id, None)

    async def get_state(self, conversation_id: str) -> ConversationState:
        session = self._sessions.get(conversation_id)
        return session.state if session else ConversationState.IDLE

    def sweep_idle(self, max_idle_seconds: int) -> int:
        """Drop sessions untouched for longer than ``max_idle_seconds``.

        Sessions whose conversation is currently locked are kept.

        Returns:
            Number of sessions dropped
        """
        cutoff = self._clock() - timedelta(seconds=max_idle_seconds)
        stale = [
            conversation_id
            for conversation_id, session in self._sessions.items()
            if session.updated_at < cutoff and not self._locks.is_held(conversation_id)
        ]
        for conversation_id in stale:
            del self._sessions[conversation_id]

        if stale:
            logger.info("Swept idle sessions", removed=len(stale))

        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
