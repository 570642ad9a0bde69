"""
Response texts for the booking conversation.

Every reply the caller sees is built here, in Brazilian Portuguese,
formatted for WhatsApp (*bold* markers, emoji bullets).
"""

from typing import Optional

from agendabot.core.session.models import BookingSession, ConfirmedBooking, ServiceOffering
from agendabot.core.scheduling.availability import MORNING, AFTERNOON

PERIOD_LABELS = {
    MORNING: "manhã",
    AFTERNOON: "tarde",
}

MAIN_MENU_OPTIONS = [
    "1️⃣ Agendar consulta",
    "2️⃣ Ver horários disponíveis",
    "3️⃣ Informações sobre serviços",
    "4️⃣ Falar com atendente",
]


def format_price(price: float) -> str:
    """R$ with comma decimals: 100.5 -> 'R$ 100,50'."""
    return f"R$ {price:.2f}".replace(".", ",")


def period_label(period: Optional[str]) -> str:
    return PERIOD_LABELS.get(period or "", period or "")


class ResponseGenerator:
    """Template-based replies, one method per conversational moment."""

    # === Service selection ===

    def services_list(self, services: list[ServiceOffering]) -> str:
        """Numbered service list that opens a booking."""
        lines = ["📋 *Serviços Disponíveis:*", ""]
        for i, service in enumerate(services, 1):
            lines.append(
                f"{i}. {service.name} ({service.duration}min - {format_price(service.price)})"
            )
        lines.append("")
        lines.append("Digite o número do serviço desejado:")
        return "\n".join(lines)

    def services_unavailable(self) -> str:
        return (
            "😕 No momento não há serviços disponíveis para agendamento. "
            "Por favor, tente novamente mais tarde."
        )

    def services_fetch_failed(self) -> str:
        return (
            "⚠️ Não consegui carregar a lista de serviços agora. "
            "Por favor, tente novamente em alguns minutos."
        )

    def invalid_service(self, count: int) -> str:
        return f"❌ Opção inválida. Por favor, digite um número de 1 a {count}."

    # === Period ===

    def ask_period(self, service: ServiceOffering) -> str:
        return (
            f"✅ Serviço selecionado: *{service.name}*\n\n"
            "Qual período você prefere?\n\n"
            "1️⃣ Manhã (08:00 - 12:00)\n"
            "2️⃣ Tarde (12:00 - 18:00)\n\n"
            "Digite 1 ou 2:"
        )

    def invalid_period(self) -> str:
        return "❌ Opção inválida. Por favor, digite 1 para Manhã ou 2 para Tarde."

    # === Date ===

    def ask_date(self, period: str) -> str:
        return (
            f"✅ Período selecionado: *{period_label(period).capitalize()}*\n\n"
            "Qual data você prefere? (formato: DD/MM/YYYY)"
        )

    def invalid_date_format(self) -> str:
        return "❌ Formato inválido. Por favor, use o formato DD/MM/YYYY (ex: 25/12/2024)"

    def invalid_calendar_date(self) -> str:
        return "❌ Data inexistente. Por favor, confira o dia e o mês e use o formato DD/MM/YYYY."

    def past_date(self) -> str:
        return "❌ A data deve ser hoje ou no futuro. Por favor, escolha outra data."

    def no_slots(self, period: str, date: str) -> str:
        return (
            f"❌ Desculpe, não há horários disponíveis em {period_label(period)} "
            f"para a data {date}. Por favor, escolha outra data."
        )

    def slots_fetch_failed(self, date: str) -> str:
        return (
            f"⚠️ Não consegui consultar os horários para {date} agora. "
            "Por favor, envie a data novamente ou escolha outra data."
        )

    # === Time ===

    def slots_list(self, date: str, period: str, slots: list[str]) -> str:
        lines = [
            f"✅ Data selecionada: *{date}*",
            "",
            f"📋 *Horários disponíveis em {period_label(period)}:*",
            "",
        ]
        for i, slot in enumerate(slots, 1):
            lines.append(f"{i}. {slot}")
        lines.append("")
        lines.append("Digite o número do horário desejado:")
        return "\n".join(lines)

    def invalid_slot(self, count: int) -> str:
        return f"❌ Opção inválida. Por favor, digite um número de 1 a {count}."

    # === Confirmation ===

    def summary(self, session: BookingSession) -> str:
        """Booking summary that asks for sim/não."""
        service = session.service
        return (
            "📅 *Resumo do Agendamento:*\n\n"
            f"👤 Nome: {session.display_name}\n"
            f"📱 Telefone: {session.caller_id}\n"
            f"🦷 Serviço: {service.name if service else ''}\n"
            f"📆 Data: {session.date}\n"
            f"⏰ Horário: {session.time}\n"
            f"🕐 Período: {period_label(session.period)}\n"
            f"💰 Valor: {format_price(service.price if service else 0)}\n\n"
            "Confirma este agendamento? (sim/não)"
        )

    def invalid_confirmation(self) -> str:
        return '❌ Resposta inválida. Por favor, digite "sim" ou "não".'

    def booking_confirmed(self, booking: ConfirmedBooking) -> str:
        return (
            "✅ *Agendamento Confirmado!*\n\n"
            "Seu agendamento foi registrado com sucesso!\n\n"
            f"📋 ID: {booking.remote_id}\n"
            f"🦷 Serviço: {booking.service.name}\n"
            f"📆 Data: {booking.date}\n"
            f"⏰ Horário: {booking.time}\n\n"
            "Obrigado por escolher nossos serviços! 😊"
        )

    def booking_confirmed_unsaved(self, booking: ConfirmedBooking) -> str:
        """Confirmed to the caller, but the backend did not record it yet."""
        return (
            "⚠️ *Agendamento Confirmado!*\n\n"
            "Seu agendamento foi confirmado, mas houve um erro ao registrar no sistema. "
            "Vamos tentar novamente automaticamente; se preferir, entre em contato conosco.\n\n"
            "📋 Detalhes:\n"
            f"🦷 Serviço: {booking.service.name}\n"
            f"📆 Data: {booking.date}\n"
            f"⏰ Horário: {booking.time}"
        )

    def booking_cancelled(self) -> str:
        return '❌ Agendamento cancelado. Digite "agendar" se desejar tentar novamente.'

    # === Session lifecycle ===

    def no_session(self) -> str:
        return (
            "Desculpe, não consegui encontrar seu agendamento. "
            'Digite "agendar" para começar novamente.'
        )

    def already_completed(self) -> str:
        return 'Seu agendamento já foi confirmado. Digite "agendar" para fazer um novo agendamento.'

    def processing_error(self) -> str:
        return "⚠️ Desculpe, ocorreu um erro ao processar sua mensagem. Por favor, tente novamente."

    # === Main menu (outside a booking) ===

    def main_menu(self, contact_name: Optional[str] = None, greeting: bool = True) -> str:
        if greeting:
            name = f" {contact_name}" if contact_name else ""
            intro = f"Olá{name}! 👋\n\nComo posso ajudá-lo?"
        else:
            intro = "Desculpe, não entendi sua pergunta. 🤔"
        options = "\n".join(MAIN_MENU_OPTIONS)
        return f"{intro}\n\nMenu de opções:\n{options}\n\nDigite o número da opção desejada."

    def business_hours(self, times: Optional[list[str]] = None) -> str:
        if times:
            listed = ", ".join(times)
            body = f"Atendemos nos seguintes horários:\n{listed}"
        else:
            body = "No momento não consegui consultar os horários de atendimento."
        return f"📅 *Horários Disponíveis:*\n\n{body}\n\nDigite \"1\" para agendar uma consulta!"

    def services_info(self, services: list[ServiceOffering]) -> str:
        if not services:
            return self.services_unavailable()
        lines = ["🦷 *Nossos Serviços:*", ""]
        for i, service in enumerate(services, 1):
            lines.append(f"{i}. *{service.name}* - {format_price(service.price)}")
        lines.append("")
        lines.append('Digite "1" para agendar uma consulta!')
        return "\n".join(lines)

    def attendant(self) -> str:
        return (
            "👨‍💼 *Falar com Atendente*\n\n"
            "Um atendente entrará em contato em breve!\n\n"
            "Obrigado por entrar em contato! 😊"
        )


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
