"""Tests for the booking state machine."""

import pytest
from datetime import date
from unittest.mock import AsyncMock

from redis.exceptions import RedisError

from agendabot.core.scheduling.backend_client import FetchResult
from agendabot.core.scheduling.flow import (
    BookingFlow,
    BookingInputError,
    parse_booking_date,
    parse_choice,
    parse_period,
)
from agendabot.core.scheduling.persistence import SaveResult
from agendabot.core.scheduling.response import ResponseGenerator
from agendabot.core.session.models import BookingSession, ServiceOffering
from agendabot.core.session.state import BookingState

TODAY = date(2030, 1, 10)

LIMPEZA = ServiceOffering(id="1", name="Limpeza", duration=30, price=100.0)
CLAREAMENTO = ServiceOffering(id="2", name="Clareamento", duration=60, price=150.0)


class TestParsers:
    """Test input parsing helpers."""

    def test_parse_choice(self):
        assert parse_choice(" 2 ") == 2
        assert parse_choice("0") == 0
        assert parse_choice("2a") is None
        assert parse_choice("-1") is None
        assert parse_choice("") is None

    def test_parse_period(self):
        assert parse_period("1") == "morning"
        assert parse_period("Manhã") == "morning"
        assert parse_period("manha") == "morning"
        assert parse_period(" TARDE ") == "afternoon"
        assert parse_period("2") == "afternoon"
        assert parse_period("noite") is None

    def test_parse_date(self):
        assert parse_booking_date("15/01/2030", TODAY) == date(2030, 1, 15)

    def test_parse_date_today_allowed(self):
        assert parse_booking_date("10/01/2030", TODAY) == TODAY

    def test_parse_date_leap_day(self):
        assert parse_booking_date("29/02/2032", TODAY) == date(2032, 2, 29)

    @pytest.mark.parametrize(
        "text,reason",
        [
            ("2030-01-15", "format"),
            ("5/1/2030", "format"),
            ("amanhã", "format"),
            ("31/02/2030", "calendar"),
            ("00/01/2030", "calendar"),
            ("09/01/2030", "past"),
            ("29/02/2021", "calendar"),
        ],
    )
    def test_parse_date_rejections(self, text, reason):
        with pytest.raises(BookingInputError) as exc_info:
            parse_booking_date(text, TODAY)

        assert exc_info.value.reason == reason


class TestBookingFlow:
    """Test BookingFlow transitions."""

    @pytest.fixture
    def catalog(self):
        catalog = AsyncMock()
        catalog.get.return_value = FetchResult(items=[LIMPEZA, CLAREAMENTO])
        return catalog

    @pytest.fixture
    def resolver(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = FetchResult(items=["08:00", "09:00", "10:30"])
        return resolver

    @pytest.fixture
    def connector(self):
        connector = AsyncMock()

        async def save(booking):
            booking.remote_id = "bk-1"
            return SaveResult(success=True, remote_id="bk-1")

        connector.save.side_effect = save
        return connector

    @pytest.fixture
    def outbox(self):
        return AsyncMock()

    @pytest.fixture
    def flow(self, catalog, resolver, connector, outbox):
        return BookingFlow(
            catalog=catalog,
            resolver=resolver,
            connector=connector,
            outbox=outbox,
            responses=ResponseGenerator(),
            today=lambda: TODAY,
        )

    def _session(self, state=BookingState.ASKING_SERVICE, **kwargs) -> BookingSession:
        defaults = dict(
            caller_id="5511999990000",
            tenant_id="tenant-1",
            display_name="Maria",
            state=state,
            offered_services=[LIMPEZA, CLAREAMENTO],
        )
        defaults.update(kwargs)
        return BookingSession(**defaults)

    def _confirming(self) -> BookingSession:
        return self._session(
            state=BookingState.CONFIRMING,
            service=LIMPEZA,
            period="morning",
            date="15/01/2030",
            time="09:00",
            available_slots=["08:00", "09:00"],
        )

    # === start ===

    @pytest.mark.asyncio
    async def test_start_lists_services(self, flow, catalog):
        reply, session = await flow.start("5511999990000", "Maria", "tenant-1")

        assert session is not None
        assert session.state == BookingState.ASKING_SERVICE
        assert session.offered_services == [LIMPEZA, CLAREAMENTO]
        assert "1. Limpeza (30min - R$ 100,00)" in reply
        assert "2. Clareamento (60min - R$ 150,00)" in reply
        catalog.get.assert_called_once_with("tenant-1")

    @pytest.mark.asyncio
    async def test_start_with_empty_catalog(self, flow, catalog):
        catalog.get.return_value = FetchResult(items=[])

        reply, session = await flow.start("5511999990000", "Maria", "tenant-1")

        assert session is None
        assert reply == flow.responses.services_unavailable()

    @pytest.mark.asyncio
    async def test_start_with_failed_catalog(self, flow, catalog):
        catalog.get.return_value = FetchResult.failure("timeout")

        reply, session = await flow.start("5511999990000", "Maria", "tenant-1")

        assert session is None
        assert reply == flow.responses.services_fetch_failed()

    # === service ===

    @pytest.mark.asyncio
    async def test_select_service(self, flow):
        session = self._session()

        outcome = await flow.process(session, "2")

        assert outcome.changed
        assert session.state == BookingState.ASKING_PERIOD
        assert session.service == CLAREAMENTO
        assert "Clareamento" in outcome.reply

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["0", "3", "abc", "1.5", ""])
    async def test_invalid_service_choice(self, flow, text):
        session = self._session()

        outcome = await flow.process(session, text)

        assert not outcome.changed
        assert session.state == BookingState.ASKING_SERVICE
        assert session.service is None
        assert "1 a 2" in outcome.reply

    @pytest.mark.asyncio
    async def test_service_choice_uses_offered_snapshot(self, flow, catalog):
        catalog.get.return_value = FetchResult(items=[CLAREAMENTO])
        session = self._session()

        await flow.process(session, "1")

        assert session.service == LIMPEZA
        catalog.get.assert_not_called()

    # === period ===

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text,period",
        [("1", "morning"), ("manhã", "morning"), ("2", "afternoon"), ("Tarde", "afternoon")],
    )
    async def test_select_period(self, flow, text, period):
        session = self._session(state=BookingState.ASKING_PERIOD, service=LIMPEZA)

        outcome = await flow.process(session, text)

        assert outcome.changed
        assert session.period == period
        assert session.state == BookingState.ASKING_DATE
        assert "DD/MM/YYYY" in outcome.reply

    @pytest.mark.asyncio
    async def test_invalid_period(self, flow):
        session = self._session(state=BookingState.ASKING_PERIOD, service=LIMPEZA)

        outcome = await flow.process(session, "3")

        assert not outcome.changed
        assert session.state == BookingState.ASKING_PERIOD
        assert session.period is None
        assert outcome.reply == flow.responses.invalid_period()

    # === date ===

    def _asking_date(self) -> BookingSession:
        return self._session(state=BookingState.ASKING_DATE, service=LIMPEZA, period="morning")

    @pytest.mark.asyncio
    async def test_select_date(self, flow, resolver):
        session = self._asking_date()

        outcome = await flow.process(session, "15/01/2030")

        assert outcome.changed
        assert session.state == BookingState.ASKING_TIME
        assert session.date == "15/01/2030"
        assert session.available_slots == ["08:00", "09:00", "10:30"]
        assert "1. 08:00" in outcome.reply
        assert "3. 10:30" in outcome.reply
        resolver.resolve.assert_called_once_with("tenant-1", date(2030, 1, 15), "morning")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text,reply_name",
        [
            ("15-01-2030", "invalid_date_format"),
            ("31/02/2030", "invalid_calendar_date"),
            ("01/01/2030", "past_date"),
        ],
    )
    async def test_invalid_date_never_resolves(self, flow, resolver, text, reply_name):
        session = self._asking_date()

        outcome = await flow.process(session, text)

        assert not outcome.changed
        assert session.state == BookingState.ASKING_DATE
        assert session.date is None
        assert outcome.reply == getattr(flow.responses, reply_name)()
        resolver.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_date_without_slots(self, flow, resolver):
        resolver.resolve.return_value = FetchResult(items=[])
        session = self._asking_date()

        outcome = await flow.process(session, "15/01/2030")

        assert outcome.changed
        assert session.state == BookingState.ASKING_DATE
        assert session.date == "15/01/2030"
        assert session.available_slots is None
        assert "não há horários disponíveis em manhã" in outcome.reply

    @pytest.mark.asyncio
    async def test_date_when_slot_fetch_fails(self, flow, resolver):
        resolver.resolve.return_value = FetchResult.failure("timeout")
        session = self._asking_date()

        outcome = await flow.process(session, "15/01/2030")

        assert outcome.changed
        assert session.state == BookingState.ASKING_DATE
        assert session.date == "15/01/2030"
        assert outcome.reply == flow.responses.slots_fetch_failed("15/01/2030")

    # === time ===

    def _asking_time(self) -> BookingSession:
        return self._session(
            state=BookingState.ASKING_TIME,
            service=LIMPEZA,
            period="morning",
            date="15/01/2030",
            available_slots=["08:00", "09:00"],
        )

    @pytest.mark.asyncio
    async def test_select_time(self, flow, resolver):
        session = self._asking_time()

        outcome = await flow.process(session, "2")

        assert outcome.changed
        assert session.time == "09:00"
        assert session.state == BookingState.CONFIRMING
        assert "Resumo do Agendamento" in outcome.reply
        assert "Limpeza" in outcome.reply
        assert "R$ 100,00" in outcome.reply
        resolver.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_time_choice(self, flow):
        session = self._asking_time()

        outcome = await flow.process(session, "3")

        assert not outcome.changed
        assert session.state == BookingState.ASKING_TIME
        assert session.time is None
        assert "1 a 2" in outcome.reply

    # === confirmation ===

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["sim", "SIM", " s "])
    async def test_confirm_saves_once(self, flow, connector, outbox, text):
        session = self._confirming()

        outcome = await flow.process(session, text)

        assert outcome.changed
        assert outcome.completed
        assert session.state == BookingState.COMPLETED
        assert session.completed_at is not None
        assert session.booking_id == "bk-1"
        assert outcome.booking.service == LIMPEZA
        assert outcome.booking.date == "15/01/2030"
        assert outcome.booking.time == "09:00"
        assert "bk-1" in outcome.reply
        connector.save.assert_called_once()
        outbox.enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_confirm_when_save_fails(self, flow, connector, outbox):
        connector.save.side_effect = None
        connector.save.return_value = SaveResult(success=False, error="500")
        session = self._confirming()

        outcome = await flow.process(session, "sim")

        assert outcome.completed
        assert session.state == BookingState.COMPLETED
        assert session.booking_id is None
        assert outcome.reply == flow.responses.booking_confirmed_unsaved(outcome.booking)
        connector.save.assert_called_once()
        outbox.enqueue.assert_called_once_with(outcome.booking, last_error="500")

    @pytest.mark.asyncio
    async def test_confirm_when_outbox_unavailable(self, flow, connector, outbox):
        connector.save.side_effect = None
        connector.save.return_value = SaveResult(success=False, error="500")
        outbox.enqueue.side_effect = RedisError("down")
        session = self._confirming()

        outcome = await flow.process(session, "sim")

        assert outcome.completed
        assert session.state == BookingState.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["não", "nao", "N"])
    async def test_decline_cancels(self, flow, connector, text):
        session = self._confirming()

        outcome = await flow.process(session, text)

        assert outcome.cancelled
        assert not outcome.completed
        assert outcome.reply == flow.responses.booking_cancelled()
        connector.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_confirmation(self, flow, connector):
        session = self._confirming()

        outcome = await flow.process(session, "talvez")

        assert not outcome.changed
        assert not outcome.cancelled
        assert session.state == BookingState.CONFIRMING
        assert outcome.reply == flow.responses.invalid_confirmation()
        connector.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_completed_session_has_no_side_effects(self, flow, connector):
        session = self._confirming()
        session.state = BookingState.COMPLETED

        outcome = await flow.process(session, "sim")

        assert not outcome.changed
        assert outcome.reply == flow.responses.already_completed()
        connector.save.assert_not_called()

    # === full conversation ===

    @pytest.mark.asyncio
    async def test_full_conversation(self, flow, connector):
        _, session = await flow.start("5511999990000", "Maria", "tenant-1")

        for text, state in [
            ("1", BookingState.ASKING_PERIOD),
            ("manhã", BookingState.ASKING_DATE),
            ("15/01/2030", BookingState.ASKING_TIME),
            ("1", BookingState.CONFIRMING),
            ("sim", BookingState.COMPLETED),
        ]:
            await flow.process(session, text)
            assert session.state == state

        booking = connector.save.call_args.args[0]
        assert booking.caller_name == "Maria"
        assert booking.time == "08:00"
        assert booking.price == 100.0
