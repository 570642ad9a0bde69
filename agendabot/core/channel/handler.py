"""
Conversation Handler.

Entry point for every inbound caller message:
1. Ignore group chats
2. Continue an active booking
3. Otherwise route by keyword (start booking, hours, services, attendant)
4. Fall back to the main menu
5. Deliver the reply through the channel
"""

import logging
from typing import Callable, Optional

from agendabot.config import settings
from agendabot.core.channel.base import InboundMessage, MessageChannel
from agendabot.core.scheduling.backend_client import (
    BackendError,
    BookingBackendClient,
    get_backend_client,
)
from agendabot.core.scheduling.catalog import ServiceCatalog
from agendabot.core.scheduling.engine import BookingEngine, get_booking_engine
from agendabot.core.scheduling.response import ResponseGenerator, get_response_generator

logger = logging.getLogger(__name__)

GREETINGS = {"olá", "ola", "oi", "opa", "e aí", "e ai"}
BOOKING_KEYWORDS = ("agendar", "agendamento", "consulta")
HOURS_KEYWORDS = ("horários", "horarios", "disponível", "disponivel")
SERVICES_KEYWORDS = ("serviços", "servicos", "informações", "informacoes")
ATTENDANT_KEYWORDS = ("atendente", "falar")


def _mentions(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


class ConversationHandler:
    """
    Routes inbound messages between the booking engine and the main menu.

    An active booking always takes the message; keywords are only looked at
    when the caller has no unfinished session.
    """

    def __init__(
        self,
        channel: MessageChannel,
        engine: Optional[BookingEngine] = None,
        client: Optional[BookingBackendClient] = None,
        catalog: Optional[ServiceCatalog] = None,
        responses: Optional[ResponseGenerator] = None,
        tenant_resolver: Optional[Callable[[InboundMessage], Optional[str]]] = None,
    ):
        """Initialize handler.

        Args:
            channel: Transport used to deliver replies
            engine: Booking engine (uses singleton if not provided)
            client: Backend client for tenant hours (uses singleton if not provided)
            catalog: Catalog for the services menu (defaults to the engine's)
            responses: Reply templates
            tenant_resolver: Maps a message to its tenant; falls back to
                the message's own tenant_id and then default_tenant_id
        """
        self._channel = channel
        self._engine = engine or get_booking_engine()
        self._client = client or get_backend_client()
        self._catalog = catalog or self._engine.catalog or ServiceCatalog(self._client)
        self._responses = responses or get_response_generator()
        self._tenant_resolver = tenant_resolver

    @property
    def engine(self) -> BookingEngine:
        return self._engine

    def resolve_tenant(self, message: InboundMessage) -> str:
        tenant_id = None
        if self._tenant_resolver is not None:
            tenant_id = self._tenant_resolver(message)
        return tenant_id or message.tenant_id or settings.default_tenant_id

    async def handle(self, message: InboundMessage) -> Optional[str]:
        """
        Process one inbound message and send the reply.

        Returns:
            The reply text, or None for ignored messages
        """
        if message.is_group:
            logger.debug(f"Ignoring group message from {message.sender}")
            return None

        reply = await self.reply_for(message)

        outcome = await self._channel.send(message.sender, reply)
        if not outcome.success:
            logger.error(f"Failed to deliver reply to {message.sender}: {outcome.error}")
        return reply

    async def reply_for(self, message: InboundMessage) -> str:
        """Compute the reply without sending it."""
        caller_id = message.sender
        text = message.text.strip().lower()

        result = await self._engine.take_message(
            caller_id,
            message.text,
            start_booking=text == "1" or _mentions(text, BOOKING_KEYWORDS),
            display_name=message.display_name or caller_id,
            tenant_id=self.resolve_tenant(message),
        )
        if result is not None:
            return result.reply

        if text in GREETINGS:
            return self._responses.main_menu(message.display_name or None)

        if text == "2" or _mentions(text, HOURS_KEYWORDS):
            return await self._business_hours(self.resolve_tenant(message))

        if text == "3" or _mentions(text, SERVICES_KEYWORDS):
            services = await self._catalog.get(self.resolve_tenant(message))
            if not services.ok:
                return self._responses.services_fetch_failed()
            return self._responses.services_info(services.items)

        if text == "4" or _mentions(text, ATTENDANT_KEYWORDS):
            return self._responses.attendant()

        return self._responses.main_menu(greeting=False)

    async def _business_hours(self, tenant_id: str) -> str:
        try:
            times = await self._client.get_tenant_hours(tenant_id)
        except BackendError as e:
            logger.warning(f"Failed to load hours for tenant {tenant_id}: {e}")
            times = None
        return self._responses.business_hours(times)
