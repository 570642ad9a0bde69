"""Redis-based booking session storage with per-caller serialization."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from redis.exceptions import RedisError

from agendabot.config import settings
from agendabot.infra.redis import get_redis, mark_redis_unavailable, APP_PREFIX
from .models import BookingSession


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)

logger = logging.getLogger(__name__)

# Session key prefix (extends existing APP_PREFIX)
SESSION_PREFIX = f"{APP_PREFIX}booking:session:"


class SessionManager:
    """
    Keyed storage of one booking session per caller.

    Key pattern: agendabot:v1:booking:session:{caller_id}

    Retention policy:
    - unfinished sessions expire `session_ttl` seconds after their last save
    - completed sessions are kept for `completed_session_ttl` seconds
    - a TTL of 0 or less disables expiry

    Gracefully handles Redis unavailability with in-memory fallback, which
    stores the same JSON and applies the same expiry on read. A Redis error
    during a call switches that call (and later ones, until the reconnect
    cooldown passes) to the fallback. Every `get` returns a fresh object,
    so unsaved mutations never reach the store.

    `lock(caller_id)` serializes work on one caller while other callers
    proceed concurrently. Locks are per process.
    """

    def __init__(
        self,
        session_ttl: Optional[int] = None,
        completed_session_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize session manager.

        Args:
            session_ttl: Idle lifetime of unfinished sessions (defaults to settings)
            completed_session_ttl: Retention of completed sessions (defaults to settings)
            clock: Monotonic clock for in-memory expiry
        """
        self._ttl = settings.session_ttl if session_ttl is None else session_ttl
        self._completed_ttl = (
            settings.completed_session_ttl
            if completed_session_ttl is None
            else completed_session_ttl
        )
        self._clock = clock
        self._in_memory_fallback: dict[str, tuple[str, Optional[float]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_waiters: dict[str, int] = {}

    def _key(self, caller_id: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{caller_id}"

    def ttl_for(self, session: BookingSession) -> int:
        """Retention in seconds that applies to this session."""
        return self._completed_ttl if session.is_completed else self._ttl

    @asynccontextmanager
    async def lock(self, caller_id: str) -> AsyncIterator[None]:
        """Hold the caller's lock for the duration of the block."""
        lock = self._locks.get(caller_id)
        if lock is None:
            lock = self._locks[caller_id] = asyncio.Lock()
            self._lock_waiters[caller_id] = 0
        self._lock_waiters[caller_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_waiters[caller_id] -= 1
            if self._lock_waiters[caller_id] == 0:
                del self._locks[caller_id]
                del self._lock_waiters[caller_id]

    def active_locks(self) -> int:
        """Number of callers with a held or awaited lock."""
        return len(self._locks)

    async def _redis_failed(self, operation: str, caller_id: str, error: RedisError) -> None:
        logger.error(f"Redis {operation} failed for session {caller_id}: {error}")
        await mark_redis_unavailable(error)

    async def get(self, caller_id: str) -> Optional[BookingSession]:
        """
        Get the caller's session.

        Args:
            caller_id: Caller identifier (phone number)

        Returns:
            BookingSession or None if absent or expired
        """
        redis = await get_redis()

        if redis:
            try:
                data = await redis.get(self._key(caller_id))
            except RedisError as e:
                await self._redis_failed("get", caller_id, e)
            else:
                if data:
                    return BookingSession.from_json(data)
                return None

        entry = self._in_memory_fallback.get(caller_id)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._in_memory_fallback[caller_id]
            logger.debug(f"Session expired: {caller_id}")
            return None
        return BookingSession.from_json(data)

    async def save(self, session: BookingSession) -> bool:
        """
        Save session, resetting its retention window.

        Args:
            session: BookingSession to save

        Returns:
            True if saved successfully
        """
        session.updated_at = _utcnow()
        ttl = self.ttl_for(session)

        redis = await get_redis()

        if redis:
            key = self._key(session.caller_id)
            try:
                if ttl > 0:
                    await redis.setex(key, ttl, session.to_json())
                else:
                    await redis.set(key, session.to_json())
            except RedisError as e:
                await self._redis_failed("save", session.caller_id, e)
            else:
                logger.debug(f"Session saved: {session.caller_id} ({session.state.value})")
                return True

        expires_at = self._clock() + ttl if ttl > 0 else None
        self._in_memory_fallback[session.caller_id] = (session.to_json(), expires_at)
        return True

    async def delete(self, caller_id: str) -> bool:
        """
        Delete the caller's session.

        Args:
            caller_id: Caller identifier

        Returns:
            True if a session was deleted
        """
        redis = await get_redis()

        if redis:
            try:
                deleted = await redis.delete(self._key(caller_id))
            except RedisError as e:
                await self._redis_failed("delete", caller_id, e)
            else:
                if deleted:
                    logger.debug(f"Session deleted: {caller_id}")
                return bool(deleted)

        if caller_id in self._in_memory_fallback:
            del self._in_memory_fallback[caller_id]
            return True
        return False

    def purge_expired(self) -> int:
        """Drop expired in-memory sessions. Redis expires its keys itself.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [
            caller_id
            for caller_id, (_, expires_at) in self._in_memory_fallback.items()
            if expires_at is not None and now >= expires_at
        ]
        for caller_id in expired:
            del self._in_memory_fallback[caller_id]
        if expired:
            logger.info(f"Purged {len(expired)} expired in-memory sessions")
        return len(expired)


# Singleton
_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get singleton SessionManager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager
