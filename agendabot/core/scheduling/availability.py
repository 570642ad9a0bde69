"""Open appointment slots for a date and period."""

import asyncio
import logging
from datetime import date
from typing import Iterable, Optional

from agendabot.core.scheduling.backend_client import (
    BackendError,
    BookingBackendClient,
    FetchResult,
)

logger = logging.getLogger(__name__)

MORNING = "morning"
AFTERNOON = "afternoon"

# Half-open hour ranges [start, end)
PERIOD_HOURS: dict[str, tuple[int, int]] = {
    MORNING: (8, 12),
    AFTERNOON: (12, 18),
}


def _hour_of(slot: str) -> Optional[int]:
    head = slot.strip().split(":", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


def filter_slots(
    times: Iterable[str],
    blocked: Iterable[str],
    period: Optional[str],
) -> list[str]:
    """Keep the configured times that fall in the period and are not blocked.

    An unrecognized period keeps every time. Blocked times are matched as
    exact "HH:MM" strings. Order is preserved.
    """
    blocked_set = set(blocked)
    hours = PERIOD_HOURS.get(period or "")

    available = []
    for slot in times:
        if hours is not None:
            hour = _hour_of(slot)
            if hour is None or not hours[0] <= hour < hours[1]:
                continue
        if slot in blocked_set:
            continue
        available.append(slot)
    return available


class SlotAvailabilityResolver:
    """Combines a tenant's working hours with the times already booked."""

    def __init__(self, client: BookingBackendClient):
        self._client = client

    async def resolve(self, tenant_id: str, day: date, period: Optional[str]) -> FetchResult[str]:
        """Open slots for the tenant on `day` within `period`.

        Both upstream reads run concurrently. If either fails the result is
        empty with an error reason; nothing is raised.
        """
        try:
            blocked, times = await asyncio.gather(
                self._client.get_blocked_times(tenant_id, day),
                self._client.get_tenant_hours(tenant_id),
            )
        except BackendError as e:
            logger.warning(
                f"Failed to resolve slots for tenant {tenant_id} on {day.isoformat()}: {e}"
            )
            return FetchResult.failure(str(e))

        slots = filter_slots(times, blocked, period)
        logger.debug(
            f"Tenant {tenant_id} {day.isoformat()} {period}: "
            f"{len(slots)} open of {len(times)} configured, {len(blocked)} blocked"
        )
        return FetchResult(items=slots)
