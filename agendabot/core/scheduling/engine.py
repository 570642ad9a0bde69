"""
Booking Engine - Main Orchestrator.

Exposes the booking conversation to the message handler:
take_message / begin / advance / peek / cancel. Each call holds the
caller's session lock, so messages from one caller are processed strictly
in order while other callers run concurrently.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from agendabot.core.session import (
    BookingSession,
    BookingState,
    ConfirmedBooking,
    SessionManager,
    get_session_manager,
)
from agendabot.core.scheduling.availability import SlotAvailabilityResolver
from agendabot.core.scheduling.backend_client import BookingBackendClient, get_backend_client
from agendabot.core.scheduling.catalog import ServiceCatalog
from agendabot.core.scheduling.flow import BookingFlow
from agendabot.core.scheduling.persistence import BookingOutbox, PersistenceConnector

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    """Response from one advance call."""

    reply: str
    completed: bool = False
    booking: Optional[ConfirmedBooking] = None
    state: Optional[BookingState] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result: dict = {
            "reply": self.reply,
            "completed": self.completed,
        }
        if self.state is not None:
            result["state"] = self.state.value
        if self.booking is not None:
            result["booking"] = self.booking.to_dict()
        return result


class BookingEngine:
    """
    Coordinates:
    - Session storage and per-caller locking
    - The booking flow (validation, transitions, replies)
    - Session deletion on cancellation
    """

    def __init__(
        self,
        flow: BookingFlow,
        sessions: Optional[SessionManager] = None,
        catalog: Optional[ServiceCatalog] = None,
        outbox: Optional[BookingOutbox] = None,
    ):
        """Initialize engine.

        Args:
            flow: Booking state machine
            sessions: Session storage (uses singleton if not provided)
            catalog: Catalog shared with the flow, exposed for invalidation
            outbox: Outbox shared with the flow, exposed for the retry worker
        """
        self._flow = flow
        self._sessions = sessions or get_session_manager()
        self.catalog = catalog
        self.outbox = outbox

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    async def _begin(
        self, caller_id: str, display_name: str, tenant_id: str
    ) -> tuple[str, Optional[BookingSession]]:
        reply, session = await self._flow.start(caller_id, display_name, tenant_id)
        if session is not None:
            await self._sessions.save(session)
            logger.info(f"Booking started for {caller_id} (tenant {tenant_id})")
        else:
            logger.info(f"Booking not started for {caller_id}: no services")
        return reply, session

    async def _advance(
        self, caller_id: str, session: Optional[BookingSession], text: str
    ) -> AdvanceResult:
        if session is None:
            return AdvanceResult(reply=self._flow.responses.no_session())

        try:
            outcome = await self._flow.process(session, text)
        except Exception as e:
            logger.error(f"Error advancing booking for {caller_id}: {e}", exc_info=True)
            stored = await self._sessions.get(caller_id)
            return AdvanceResult(
                reply=self._flow.responses.processing_error(),
                state=stored.state if stored else None,
            )

        if outcome.cancelled:
            await self._sessions.delete(caller_id)
            return AdvanceResult(reply=outcome.reply)

        if outcome.changed:
            await self._sessions.save(session)

        if outcome.completed:
            logger.info(f"Booking completed for {caller_id}: {session.booking_id or 'unsaved'}")

        return AdvanceResult(
            reply=outcome.reply,
            completed=outcome.completed,
            booking=outcome.booking,
            state=session.state,
        )

    async def begin(self, caller_id: str, display_name: str, tenant_id: str) -> str:
        """Start (or restart) a booking for the caller.

        Returns:
            The first prompt, or an explanation when no service can be offered
        """
        async with self._sessions.lock(caller_id):
            reply, _ = await self._begin(caller_id, display_name, tenant_id)
            return reply

    async def advance(self, caller_id: str, text: str) -> AdvanceResult:
        """Drive one state transition with the caller's message."""
        async with self._sessions.lock(caller_id):
            session = await self._sessions.get(caller_id)
            return await self._advance(caller_id, session, text)

    async def take_message(
        self,
        caller_id: str,
        text: str,
        *,
        start_booking: bool,
        display_name: str,
        tenant_id: str,
    ) -> Optional[AdvanceResult]:
        """Give a message to the booking conversation if it belongs there.

        An unfinished session advances with the message; otherwise a new
        booking starts when `start_booking` is set. The check and the
        transition run under one hold of the caller's lock.

        Returns:
            The booking reply, or None when the message is not for the
            booking conversation
        """
        async with self._sessions.lock(caller_id):
            session = await self._sessions.get(caller_id)
            if session is not None and not session.is_completed:
                return await self._advance(caller_id, session, text)

            if not start_booking:
                return None

            reply, started = await self._begin(caller_id, display_name, tenant_id)
            return AdvanceResult(reply=reply, state=started.state if started else None)

    async def peek(self, caller_id: str) -> Optional[BookingSession]:
        """Current session for the caller, or None."""
        async with self._sessions.lock(caller_id):
            return await self._sessions.get(caller_id)

    async def cancel(self, caller_id: str) -> bool:
        """Drop the caller's session. Returns True if one existed."""
        async with self._sessions.lock(caller_id):
            deleted = await self._sessions.delete(caller_id)
            if deleted:
                logger.info(f"Booking session cancelled for {caller_id}")
            return deleted

    async def has_active_session(self, caller_id: str) -> bool:
        """True when the caller is in the middle of a booking."""
        session = await self.peek(caller_id)
        return session is not None and not session.is_completed


def build_booking_engine(
    client: Optional[BookingBackendClient] = None,
    sessions: Optional[SessionManager] = None,
) -> BookingEngine:
    """Wire an engine with its catalog, resolver, connector and outbox."""
    client = client or get_backend_client()
    catalog = ServiceCatalog(client)
    connector = PersistenceConnector(client)
    outbox = BookingOutbox(connector)
    flow = BookingFlow(
        catalog=catalog,
        resolver=SlotAvailabilityResolver(client),
        connector=connector,
        outbox=outbox,
    )
    return BookingEngine(flow=flow, sessions=sessions, catalog=catalog, outbox=outbox)


# Singleton
_engine: Optional[BookingEngine] = None


def get_booking_engine() -> BookingEngine:
    """Get singleton BookingEngine."""
    global _engine
    if _engine is None:
        _engine = build_booking_engine()
    return _engine
