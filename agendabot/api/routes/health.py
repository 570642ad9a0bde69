"""Health endpoints: liveness, and a readiness report on storage and the outbox."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from agendabot import __version__
from agendabot.config import settings
from agendabot.core.scheduling import get_booking_engine
from agendabot.infra.redis import check_redis_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_started_at: Optional[datetime] = None


def set_start_time() -> None:
    """Record startup time for uptime reporting."""
    global _started_at
    _started_at = datetime.now(timezone.utc)


def uptime_seconds() -> Optional[float]:
    if _started_at is None:
        return None
    return (datetime.now(timezone.utc) - _started_at).total_seconds()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    uptime_seconds: Optional[float] = None


class ReadinessResponse(BaseModel):
    """Where sessions are stored and how many bookings await a retry."""

    status: str
    session_storage: str
    outbox_pending: Optional[int] = None


@router.get("", response_model=HealthResponse, summary="Liveness")
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        uptime_seconds=uptime_seconds(),
    )


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness")
async def ready() -> ReadinessResponse:
    """
    Always 200: without Redis the bot keeps working from memory, which is
    reported as "degraded" since sessions are then lost on restart.
    """
    redis_ok = await check_redis_health()
    if not redis_ok:
        logger.warning("Readiness: Redis unavailable, sessions kept in memory")

    outbox_pending = None
    outbox = get_booking_engine().outbox
    if outbox is not None:
        outbox_pending = await outbox.pending()

    return ReadinessResponse(
        status="ready" if redis_ok else "degraded",
        session_storage="redis" if redis_ok else "memory",
        outbox_pending=outbox_pending,
    )
