"""
In-memory conversation store.

Bounded by an LRU size limit and a TTL. Each session has its own
asyncio.Lock; callers hold it for a whole turn so that at most one turn
per session is in flight. Sessions never share state: reads return
copies, and commits swap in a fully built replacement.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from trip_dialog.conversation.schemas import ConversationState, StoreStats


logger = logging.getLogger(__name__)


@dataclass
class StoreConfig:
    """
    Attributes:
        ttl_seconds: Idle time after which a session expires
        max_sessions: Most sessions kept; the least recently used is evicted
    """

    ttl_seconds: int = 24 * 60 * 60
    max_sessions: int = 1000


DEFAULT_STORE_CONFIG = StoreConfig()


class ConversationStore:
    """LRU + TTL bounded map of session id to ConversationState."""

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or DEFAULT_STORE_CONFIG
        self._clock = clock
        self._sessions: "OrderedDict[str, ConversationState]" = OrderedDict()
        self._touched: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._eviction_listeners: List[Callable[[str], None]] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return self._live(session_id) is not None

    def add_eviction_listener(self, callback: Callable[[str], None]) -> None:
        """Call callback(session_id) whenever a session is deleted, expired or evicted."""
        self._eviction_listeners.append(callback)

    def lock(self, session_id: str) -> asyncio.Lock:
        """The lock serializing turns for session_id."""
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    def get(self, session_id: str) -> Optional[ConversationState]:
        """Return a copy of the session's state, or None if unknown or expired."""
        state = self._live(session_id)
        if state is None:
            return None
        self._sessions.move_to_end(session_id)
        return state.model_copy(deep=True)

    def get_or_create(self, session_id: str, user_id: Optional[str] = None) -> ConversationState:
        """Return a copy of the session's state, creating an empty one if needed."""
        existing = self.get(session_id)
        if existing is not None:
            return existing

        state = ConversationState(session_id=session_id)
        state.metadata.user_id = user_id
        self._put(state)
        logger.info(f"[session={session_id}] [component=store] Created session")
        return state.model_copy(deep=True)

    def commit(self, state: ConversationState) -> None:
        """Replace the stored state for state.session_id in one step."""
        self._put(state.model_copy(deep=True))

    def delete(self, session_id: str) -> bool:
        existed = self._sessions.pop(session_id, None) is not None
        self._touched.pop(session_id, None)
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]
        if existed:
            logger.info(f"[session={session_id}] [component=store] Deleted session")
            for callback in self._eviction_listeners:
                callback(session_id)
        return existed

    def evict_expired(self) -> int:
        """Drop every expired session and return how many were dropped."""
        now = self._clock()
        expired = [
            session_id
            for session_id, touched in self._touched.items()
            if now - touched > self.config.ttl_seconds
        ]
        for session_id in expired:
            self.delete(session_id)
        if expired:
            logger.info(f"[component=store] Evicted {len(expired)} expired sessions")
        return len(expired)

    def stats(self) -> StoreStats:
        self.evict_expired()
        states = list(self._sessions.values())
        oldest: Optional[datetime] = min(
            (s.metadata.start_time for s in states), default=None
        )
        return StoreStats(
            active_sessions=len(states),
            total_messages=sum(s.metadata.message_count for s in states),
            oldest_session_start=oldest,
        )

    def _live(self, session_id: str) -> Optional[ConversationState]:
        state = self._sessions.get(session_id)
        if state is None:
            return None
        if self._clock() - self._touched.get(session_id, 0.0) > self.config.ttl_seconds:
            logger.info(f"[session={session_id}] [component=store] Session expired")
            self.delete(session_id)
            return None
        return state

    def _put(self, state: ConversationState) -> None:
        session_id = state.session_id
        state.metadata.last_activity = datetime.now(timezone.utc)
        self._sessions[session_id] = state
        self._sessions.move_to_end(session_id)
        self._touched[session_id] = self._clock()

        while len(self._sessions) > self.config.max_sessions:
            evicted, _ = next(iter(self._sessions.items()))
            logger.info(f"[session={evicted}] [component=store] Evicted least recently used session")
            self.delete(evicted)
