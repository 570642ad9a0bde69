"""
HTTP client for the scheduling backend.

The backend runs separately and exposes REST endpoints for:
- Listing a tenant's bookable services
- Listing already-booked times for a date
- Listing the tenant's configured working times
- Saving a confirmed booking

The client raises BackendError on any failure; the catalog, availability
resolver and persistence connector decide how to degrade.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Generic, Optional, TypeVar

import httpx

from agendabot.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendError(Exception):
    """Upstream call failed: transport error, non-success status or malformed body."""


@dataclass
class FetchResult(Generic[T]):
    """Outcome of an upstream read.

    A failed fetch always has empty `items` and carries the reason in
    `error`, so callers that only look at `items` keep the degrade-to-empty
    behavior while others can tell "nothing there" from "could not ask".
    """

    items: list[T] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "FetchResult[T]":
        return cls(items=[], error=error)


class BookingBackendClient:
    """
    HTTP client for the scheduling backend API.

    Endpoints (paths configurable in settings):
    - GET  services?tenant=T                      -> [{id, name, duration, price}]
    - GET  blocked-times?tenant=T&date=YYYY-MM-DD -> ["HH:MM", ...]
    - GET  tenant-hours?tenant=T                  -> {times: ["HH:MM", ...]}
    - POST save-booking                           -> {id}
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize client.

        Args:
            base_url: Backend base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.backend_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.services_path = settings.services_path
        self.blocked_times_path = settings.blocked_times_path
        self.tenant_hours_path = settings.tenant_hours_path
        self.save_booking_path = settings.save_booking_path
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict) -> Any:
        client = await self._get_client()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise BackendError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"GET {path} returned invalid JSON: {e}") from e

    # === Catalog ===

    async def list_services(self, tenant_id: str) -> list[dict]:
        """List the tenant's bookable services as raw dicts.

        Args:
            tenant_id: Tenant/operator identifier

        Returns:
            Service entries in backend order
        """
        data = await self._get_json(self.services_path, {"tenant": tenant_id})

        if isinstance(data, dict):
            data = data.get("services", data.get("items"))
        if not isinstance(data, list):
            raise BackendError(f"Unexpected services payload: {type(data).__name__}")
        return [entry for entry in data if isinstance(entry, dict)]

    # === Availability ===

    async def get_blocked_times(self, tenant_id: str, day: date) -> list[str]:
        """List already-booked times for a date.

        Args:
            tenant_id: Tenant/operator identifier
            day: Date to check

        Returns:
            "HH:MM" strings
        """
        data = await self._get_json(
            self.blocked_times_path,
            {"tenant": tenant_id, "date": day.isoformat()},
        )
        if not isinstance(data, list):
            raise BackendError(f"Unexpected blocked times payload: {type(data).__name__}")
        return [t for t in data if isinstance(t, str)]

    async def get_tenant_hours(self, tenant_id: str) -> list[str]:
        """List every time of day the tenant offers, unfiltered by date.

        Args:
            tenant_id: Tenant/operator identifier

        Returns:
            "HH:MM" strings in configured order
        """
        data = await self._get_json(self.tenant_hours_path, {"tenant": tenant_id})
        if not isinstance(data, dict):
            raise BackendError(f"Unexpected tenant hours payload: {type(data).__name__}")
        times = data.get("times") or []
        if not isinstance(times, list):
            raise BackendError("Tenant hours 'times' is not a list")
        return [t for t in times if isinstance(t, str)]

    # === Bookings ===

    async def save_booking(self, payload: dict) -> str:
        """Save a confirmed booking.

        Args:
            payload: Booking body as expected by the backend

        Returns:
            Remote booking identifier
        """
        client = await self._get_client()
        try:
            response = await client.post(self.save_booking_path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise BackendError(f"POST {self.save_booking_path} failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"Save booking returned invalid JSON: {e}") from e

        booking_id = data.get("id") if isinstance(data, dict) else None
        if booking_id is None:
            raise BackendError("No booking ID returned from backend")
        return str(booking_id)


# Singleton
_client: Optional[BookingBackendClient] = None


def get_backend_client() -> BookingBackendClient:
    """Get singleton BookingBackendClient."""
    global _client
    if _client is None:
        _client = BookingBackendClient()
    return _client
