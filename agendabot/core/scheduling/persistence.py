"""
Hand-off of confirmed bookings to the scheduling backend.

PersistenceConnector makes a single save attempt. BookingOutbox keeps the
bookings whose save failed and retries them in the background, so a
confirmed conversation is eventually recorded (at-least-once).
"""

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from redis.exceptions import RedisError

from agendabot.config import settings
from agendabot.core.session.models import ConfirmedBooking
from agendabot.core.scheduling.backend_client import BackendError, BookingBackendClient
from agendabot.infra.redis import get_redis, mark_redis_unavailable, APP_PREFIX

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    """Result of a save attempt."""

    success: bool
    remote_id: Optional[str] = None
    error: Optional[str] = None


def appointment_datetime(booking: ConfirmedBooking, tz: ZoneInfo) -> datetime:
    """Combine the DD/MM/YYYY date and HH:MM time into an aware datetime."""
    day = datetime.strptime(booking.date, "%d/%m/%Y").date()
    hour, minute = (int(part) for part in booking.time.split(":", 1))
    return datetime.combine(day, time(hour, minute), tzinfo=tz)


def build_booking_payload(booking: ConfirmedBooking, tz: ZoneInfo) -> dict:
    """Request body for the backend's save-booking endpoint."""
    return {
        "name": booking.caller_name,
        "phone": booking.caller_id,
        "serviceId": booking.service.id,
        "tenant": booking.tenant_id,
        "appointmentDate": appointment_datetime(booking, tz).isoformat(),
        "time": booking.time,
    }


class PersistenceConnector:
    """Posts confirmed bookings to the backend. One attempt per call, no retry."""

    def __init__(self, client: BookingBackendClient, timezone: Optional[ZoneInfo] = None):
        self._client = client
        self._tz = timezone or ZoneInfo(settings.business_timezone)

    async def save(self, booking: ConfirmedBooking) -> SaveResult:
        """Save a booking; sets `booking.remote_id` on success.

        Never raises for upstream problems.
        """
        try:
            payload = build_booking_payload(booking, self._tz)
        except ValueError as e:
            logger.error(f"Cannot build booking payload for {booking.caller_id}: {e}")
            return SaveResult(success=False, error=str(e))

        try:
            remote_id = await self._client.save_booking(payload)
        except BackendError as e:
            logger.warning(f"Failed to save booking for {booking.caller_id}: {e}")
            return SaveResult(success=False, error=str(e))

        booking.remote_id = remote_id
        logger.info(f"Booking saved for {booking.caller_id}: {remote_id}")
        return SaveResult(success=True, remote_id=remote_id)


@dataclass
class DrainStats:
    delivered: int = 0
    requeued: int = 0
    dead: int = 0


class BookingOutbox:
    """
    Retry queue for bookings whose save failed.

    Keys (with namespace):
    - agendabot:v1:outbox:bookings -> pending entries (list, JSON)
    - agendabot:v1:outbox:dead     -> entries that ran out of attempts

    Falls back to process memory when Redis is unavailable or a Redis
    command fails.
    """

    OUTBOX_KEY = f"{APP_PREFIX}outbox:bookings"
    DEAD_LETTER_KEY = f"{APP_PREFIX}outbox:dead"

    def __init__(self, connector: PersistenceConnector, max_attempts: Optional[int] = None):
        self._connector = connector
        self._max_attempts = (
            settings.outbox_max_attempts if max_attempts is None else max_attempts
        )
        self._in_memory: deque[str] = deque()
        self._in_memory_dead: list[str] = []

    async def _redis_failed(self, operation: str, error: RedisError) -> None:
        logger.error(f"Redis {operation} failed for outbox: {error}")
        await mark_redis_unavailable(error)

    async def _push(self, redis, dead: bool, raw: str) -> None:
        if redis:
            key = self.DEAD_LETTER_KEY if dead else self.OUTBOX_KEY
            try:
                await redis.rpush(key, raw)
                return
            except RedisError as e:
                await self._redis_failed("rpush", e)
        if dead:
            self._in_memory_dead.append(raw)
        else:
            self._in_memory.append(raw)

    async def enqueue(
        self,
        booking: ConfirmedBooking,
        attempts: int = 1,
        last_error: Optional[str] = None,
    ) -> None:
        """Queue a booking for retry. `attempts` counts saves already tried."""
        entry = json.dumps(
            {"booking": booking.to_dict(), "attempts": attempts, "last_error": last_error}
        )
        await self._push(await get_redis(), False, entry)
        logger.info(f"Booking for {booking.caller_id} queued for retry (attempts={attempts})")

    async def pending(self) -> int:
        redis = await get_redis()
        if redis:
            try:
                return int(await redis.llen(self.OUTBOX_KEY)) + len(self._in_memory)
            except RedisError as e:
                await self._redis_failed("llen", e)
        return len(self._in_memory)

    async def dead_letters(self) -> list[dict]:
        raw = []
        redis = await get_redis()
        if redis:
            try:
                raw = await redis.lrange(self.DEAD_LETTER_KEY, 0, -1)
            except RedisError as e:
                await self._redis_failed("lrange", e)
        return [json.loads(item) for item in [*raw, *self._in_memory_dead]]

    async def _pop(self, redis) -> Optional[str]:
        if redis:
            try:
                raw = await redis.lpop(self.OUTBOX_KEY)
            except RedisError as e:
                await self._redis_failed("lpop", e)
            else:
                if raw is not None:
                    return raw
        return self._in_memory.popleft() if self._in_memory else None

    async def drain(self) -> DrainStats:
        """Retry every entry pending at call time once.

        Entries queued in memory during a Redis outage are retried too.
        """
        stats = DrainStats()
        redis = await get_redis()
        count = len(self._in_memory)
        if redis:
            try:
                count += int(await redis.llen(self.OUTBOX_KEY))
            except RedisError as e:
                await self._redis_failed("llen", e)
                redis = None

        for _ in range(count):
            raw = await self._pop(redis)
            if raw is None:
                break

            entry = json.loads(raw)
            booking = ConfirmedBooking.from_dict(entry["booking"])
            result = await self._connector.save(booking)

            if result.success:
                stats.delivered += 1
                continue

            entry["attempts"] = entry.get("attempts", 0) + 1
            entry["last_error"] = result.error
            raw = json.dumps(entry)

            if entry["attempts"] >= self._max_attempts:
                stats.dead += 1
                logger.error(
                    f"Giving up on booking for {booking.caller_id} after "
                    f"{entry['attempts']} attempts: {result.error}"
                )
                await self._push(redis, True, raw)
            else:
                stats.requeued += 1
                await self._push(redis, False, raw)

        if count:
            logger.info(
                f"Outbox drained: {stats.delivered} delivered, "
                f"{stats.requeued} requeued, {stats.dead} dead"
            )
        return stats

    async def run(self, interval: Optional[float] = None) -> None:
        """Drain forever, every `interval` seconds, until cancelled."""
        interval = settings.outbox_retry_interval if interval is None else interval
        while True:
            try:
                await self.drain()
            except Exception as e:
                logger.error(f"Outbox drain failed: {e}", exc_info=True)
            await asyncio.sleep(interval)
