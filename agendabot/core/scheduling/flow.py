"""
Booking Conversation Flow.

The transition function of the booking state machine: given the caller's
session and the raw text they sent, validate it, advance the session and
produce the reply. Catalog, availability and persistence calls happen here;
storage and locking are the engine's job.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from redis.exceptions import RedisError

from agendabot.config import settings
from agendabot.core.session.models import BookingSession, ConfirmedBooking
from agendabot.core.session.state import BookingState, can_transition
from agendabot.core.scheduling.availability import (
    AFTERNOON,
    MORNING,
    SlotAvailabilityResolver,
)
from agendabot.core.scheduling.catalog import ServiceCatalog
from agendabot.core.scheduling.persistence import BookingOutbox, PersistenceConnector
from agendabot.core.scheduling.response import ResponseGenerator, get_response_generator

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")
CHOICE_PATTERN = re.compile(r"^\d+$")

PERIOD_INPUTS = {
    "1": MORNING,
    "manhã": MORNING,
    "manha": MORNING,
    "2": AFTERNOON,
    "tarde": AFTERNOON,
}
AFFIRMATIVE = {"sim", "s"}
NEGATIVE = {"não", "nao", "n"}


class BookingInputError(ValueError):
    """Caller input that cannot be accepted in the current state."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def parse_choice(text: str) -> Optional[int]:
    """Plain positive-or-zero integer, or None."""
    value = text.strip()
    if not CHOICE_PATTERN.match(value):
        return None
    return int(value)


def parse_period(text: str) -> Optional[str]:
    return PERIOD_INPUTS.get(text.strip().lower())


def parse_booking_date(text: str, today: date) -> date:
    """Parse DD/MM/YYYY, rejecting malformed, impossible and past dates.

    Raises:
        BookingInputError: reason is "format", "calendar" or "past"
    """
    value = text.strip()
    if not DATE_PATTERN.match(value):
        raise BookingInputError("format")
    try:
        day = datetime.strptime(value, "%d/%m/%Y").date()
    except ValueError:
        raise BookingInputError("calendar")
    if day < today:
        raise BookingInputError("past")
    return day


@dataclass
class FlowOutcome:
    """Result of one transition."""

    reply: str
    changed: bool = False  # session mutated and must be saved
    cancelled: bool = False  # session must be deleted
    completed: bool = False
    booking: Optional[ConfirmedBooking] = None


class BookingFlow:
    """
    Booking state machine.

    ASKING_SERVICE -> ASKING_PERIOD -> ASKING_DATE -> ASKING_TIME
    -> CONFIRMING -> COMPLETED, with cancellation from CONFIRMING.

    Invalid input never mutates the session and never reaches a
    collaborator; the caller gets a retry prompt in the same state.
    A valid date is bound before its slots are looked up, so it stays
    bound in ASKING_DATE when none are available or the lookup fails.
    """

    def __init__(
        self,
        catalog: ServiceCatalog,
        resolver: SlotAvailabilityResolver,
        connector: PersistenceConnector,
        outbox: Optional[BookingOutbox] = None,
        responses: Optional[ResponseGenerator] = None,
        tz: Optional[ZoneInfo] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._catalog = catalog
        self._resolver = resolver
        self._connector = connector
        self._outbox = outbox
        self._responses = responses or get_response_generator()
        self._tz = tz or ZoneInfo(settings.business_timezone)
        self._today = today or (lambda: datetime.now(self._tz).date())

    @property
    def responses(self) -> ResponseGenerator:
        return self._responses

    async def start(
        self,
        caller_id: str,
        display_name: str,
        tenant_id: str,
    ) -> tuple[str, Optional[BookingSession]]:
        """Open a new booking conversation.

        Returns:
            (reply, session). Session is None when no service can be offered.
        """
        result = await self._catalog.get(tenant_id)
        if not result.ok:
            return self._responses.services_fetch_failed(), None
        if not result.items:
            return self._responses.services_unavailable(), None

        session = BookingSession(
            caller_id=caller_id,
            tenant_id=tenant_id,
            display_name=display_name,
            offered_services=list(result.items),
        )
        return self._responses.services_list(session.offered_services), session

    async def process(self, session: BookingSession, text: str) -> FlowOutcome:
        """Consume one message for the session."""
        handlers = {
            BookingState.ASKING_SERVICE: self._handle_service,
            BookingState.ASKING_PERIOD: self._handle_period,
            BookingState.ASKING_DATE: self._handle_date,
            BookingState.ASKING_TIME: self._handle_time,
            BookingState.CONFIRMING: self._handle_confirmation,
        }
        handler = handlers.get(session.state)
        if handler is None:
            return FlowOutcome(reply=self._responses.already_completed())
        return await handler(session, text)

    def _advance(self, session: BookingSession, to_state: BookingState) -> None:
        if not can_transition(session.state, to_state):
            raise RuntimeError(
                f"Invalid transition: {session.state.value} -> {to_state.value}"
            )
        logger.debug(f"{session.caller_id}: {session.state.value} -> {to_state.value}")
        session.state = to_state

    async def _handle_service(self, session: BookingSession, text: str) -> FlowOutcome:
        services = session.offered_services
        choice = parse_choice(text)
        if choice is None or not 1 <= choice <= len(services):
            return FlowOutcome(reply=self._responses.invalid_service(len(services)))

        session.service = services[choice - 1]
        self._advance(session, BookingState.ASKING_PERIOD)
        return FlowOutcome(reply=self._responses.ask_period(session.service), changed=True)

    async def _handle_period(self, session: BookingSession, text: str) -> FlowOutcome:
        period = parse_period(text)
        if period is None:
            return FlowOutcome(reply=self._responses.invalid_period())

        session.period = period
        self._advance(session, BookingState.ASKING_DATE)
        return FlowOutcome(reply=self._responses.ask_date(period), changed=True)

    async def _handle_date(self, session: BookingSession, text: str) -> FlowOutcome:
        try:
            day = parse_booking_date(text, self._today())
        except BookingInputError as e:
            replies = {
                "format": self._responses.invalid_date_format,
                "calendar": self._responses.invalid_calendar_date,
                "past": self._responses.past_date,
            }
            return FlowOutcome(reply=replies[e.reason]())

        typed = text.strip()
        session.date = typed
        result = await self._resolver.resolve(session.tenant_id, day, session.period)
        if not result.ok:
            return FlowOutcome(reply=self._responses.slots_fetch_failed(typed), changed=True)
        if not result.items:
            return FlowOutcome(
                reply=self._responses.no_slots(session.period or "", typed), changed=True
            )

        session.available_slots = list(result.items)
        self._advance(session, BookingState.ASKING_TIME)
        return FlowOutcome(
            reply=self._responses.slots_list(typed, session.period or "", session.available_slots),
            changed=True,
        )

    async def _handle_time(self, session: BookingSession, text: str) -> FlowOutcome:
        slots = session.available_slots or []
        choice = parse_choice(text)
        if choice is None or not 1 <= choice <= len(slots):
            return FlowOutcome(reply=self._responses.invalid_slot(len(slots)))

        session.time = slots[choice - 1]
        self._advance(session, BookingState.CONFIRMING)
        return FlowOutcome(reply=self._responses.summary(session), changed=True)

    async def _handle_confirmation(self, session: BookingSession, text: str) -> FlowOutcome:
        answer = text.strip().lower()

        if answer in NEGATIVE:
            logger.info(f"Booking cancelled by {session.caller_id}")
            return FlowOutcome(reply=self._responses.booking_cancelled(), cancelled=True)

        if answer not in AFFIRMATIVE:
            return FlowOutcome(reply=self._responses.invalid_confirmation())

        booking = session.to_confirmed_booking()
        self._advance(session, BookingState.COMPLETED)
        session.completed_at = datetime.now(timezone.utc)

        result = await self._connector.save(booking)
        if result.success:
            session.booking_id = result.remote_id
            reply = self._responses.booking_confirmed(booking)
        else:
            await self._queue_for_retry(booking, result.error)
            reply = self._responses.booking_confirmed_unsaved(booking)

        return FlowOutcome(reply=reply, changed=True, completed=True, booking=booking)

    async def _queue_for_retry(self, booking: ConfirmedBooking, error: Optional[str]) -> None:
        if self._outbox is None:
            logger.warning(f"No outbox configured; booking for {booking.caller_id} not retried")
            return
        try:
            await self._outbox.enqueue(booking, last_error=error)
        except RedisError as e:
            logger.error(f"Could not queue booking for {booking.caller_id}: {e}")
