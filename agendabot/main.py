"""
Agendabot API

Process entry point: logging, Redis, the outbox retry worker and the
HTTP routes.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from agendabot import __version__
from agendabot.config import settings
from agendabot.api.routes import chat, health
from agendabot.core.scheduling import get_backend_client, get_booking_engine
from agendabot.infra.redis import RedisClient


def setup_logging() -> None:
    """Configure root logging from DEBUG / LOG_LEVEL."""
    if settings.debug:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.INFO if settings.debug else logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info(f"Starting {settings.app_name} {__version__} ({settings.app_env})")
    health.set_start_time()

    if await RedisClient.get_client() is None:
        logger.warning("Starting without Redis - sessions and outbox kept in memory")

    if not settings.default_tenant_id:
        logger.warning("DEFAULT_TENANT_ID not set; messages without a tenant cannot book")

    outbox_worker = None
    outbox = get_booking_engine().outbox
    if outbox is not None:
        outbox_worker = asyncio.create_task(outbox.run())
        logger.info(f"Outbox worker started (every {settings.outbox_retry_interval:.0f}s)")

    yield

    logger.info("Shutting down...")
    if outbox_worker is not None:
        outbox_worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await outbox_worker

    await get_backend_client().close()
    await RedisClient.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Agendabot API",
    description=(
        "Booking conversation bot: guides a caller through service, period, "
        "date and time, confirms and records the booking."
    ),
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.is_development else None,
        },
    )


app.include_router(health.router)
app.include_router(chat.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agendabot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
