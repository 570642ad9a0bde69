"""
Scheduling Module

Provides the booking engine, the booking state machine, the service
catalog, slot availability and booking persistence.

Usage:
    from agendabot.core.scheduling import get_booking_engine

    engine = get_booking_engine()
    prompt = await engine.begin("5511999990000", "Maria", tenant_id="clinic-1")
    result = await engine.advance("5511999990000", "1")
    print(result.reply)
"""

# Backend Client
from agendabot.core.scheduling.backend_client import (
    BackendError,
    BookingBackendClient,
    FetchResult,
    get_backend_client,
)

# Catalog and Availability
from agendabot.core.scheduling.catalog import ServiceCatalog
from agendabot.core.scheduling.availability import (
    AFTERNOON,
    MORNING,
    SlotAvailabilityResolver,
    filter_slots,
)

# Persistence
from agendabot.core.scheduling.persistence import (
    BookingOutbox,
    PersistenceConnector,
    SaveResult,
)

# Responses
from agendabot.core.scheduling.response import ResponseGenerator, get_response_generator

# Booking Flow
from agendabot.core.scheduling.flow import BookingFlow, BookingInputError, FlowOutcome

# Booking Engine (main orchestrator)
from agendabot.core.scheduling.engine import (
    AdvanceResult,
    BookingEngine,
    build_booking_engine,
    get_booking_engine,
)

__all__ = [
    # Backend Client
    "BackendError",
    "BookingBackendClient",
    "FetchResult",
    "get_backend_client",
    # Catalog and Availability
    "ServiceCatalog",
    "SlotAvailabilityResolver",
    "filter_slots",
    "MORNING",
    "AFTERNOON",
    # Persistence
    "PersistenceConnector",
    "BookingOutbox",
    "SaveResult",
    # Responses
    "ResponseGenerator",
    "get_response_generator",
    # Booking Flow
    "BookingFlow",
    "BookingInputError",
    "FlowOutcome",
    # Booking Engine
    "AdvanceResult",
    "BookingEngine",
    "build_booking_engine",
    "get_booking_engine",
]
