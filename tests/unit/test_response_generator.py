"""Tests for reply templates."""

from agendabot.core.scheduling.response import (
    ResponseGenerator,
    format_price,
    period_label,
)
from agendabot.core.session.models import BookingSession, ConfirmedBooking, ServiceOffering
from agendabot.core.session.state import BookingState

LIMPEZA = ServiceOffering(id="1", name="Limpeza", duration=30, price=100.0)


class TestHelpers:
    """Test formatting helpers."""

    def test_format_price(self):
        assert format_price(100) == "R$ 100,00"
        assert format_price(89.9) == "R$ 89,90"

    def test_period_label(self):
        assert period_label("morning") == "manhã"
        assert period_label("afternoon") == "tarde"
        assert period_label(None) == ""


class TestResponseGenerator:
    """Test ResponseGenerator."""

    def setup_method(self):
        self.responses = ResponseGenerator()

    def test_services_list_is_numbered(self):
        reply = self.responses.services_list([LIMPEZA])

        assert "1. Limpeza (30min - R$ 100,00)" in reply
        assert reply.endswith("Digite o número do serviço desejado:")

    def test_invalid_service_mentions_range(self):
        assert "1 a 4" in self.responses.invalid_service(4)

    def test_ask_date_names_period(self):
        assert "*Tarde*" in self.responses.ask_date("afternoon")

    def test_summary(self):
        session = BookingSession(
            caller_id="5511999990000",
            tenant_id="tenant-1",
            display_name="Maria",
            state=BookingState.CONFIRMING,
            service=LIMPEZA,
            period="morning",
            date="15/01/2030",
            time="09:00",
        )

        reply = self.responses.summary(session)

        assert "Nome: Maria" in reply
        assert "Telefone: 5511999990000" in reply
        assert "Data: 15/01/2030" in reply
        assert "Horário: 09:00" in reply
        assert "Período: manhã" in reply
        assert "(sim/não)" in reply

    def test_booking_confirmed_shows_id(self):
        booking = ConfirmedBooking(
            caller_id="5511999990000",
            caller_name="Maria",
            tenant_id="tenant-1",
            service=LIMPEZA,
            date="15/01/2030",
            time="09:00",
            price=100.0,
            remote_id="bk-9",
        )

        assert "ID: bk-9" in self.responses.booking_confirmed(booking)
        assert "ID:" not in self.responses.booking_confirmed_unsaved(booking)

    def test_main_menu(self):
        greeting = self.responses.main_menu("Maria")
        fallback = self.responses.main_menu(greeting=False)

        assert greeting.startswith("Olá Maria!")
        assert fallback.startswith("Desculpe, não entendi")
        assert "4️⃣ Falar com atendente" in fallback

    def test_business_hours(self):
        assert "08:00, 14:00" in self.responses.business_hours(["08:00", "14:00"])
        assert "não consegui" in self.responses.business_hours(None)

    def test_services_info_empty(self):
        assert self.responses.services_info([]) == self.responses.services_unavailable()
