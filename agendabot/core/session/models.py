"""
Booking data models.

BookingSession is the per-caller conversation record stored by the
SessionManager. ServiceOffering and ConfirmedBooking are the values it
carries in and hands off.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .state import BookingState, is_terminal_state


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class ServiceOffering:
    """Bookable service from the tenant's catalog."""

    id: str
    name: str
    duration: int  # minutes
    price: float

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceOffering":
        """Create from API response dict.

        Raises:
            ValueError: if the entry has no usable id or name, or a
                non-numeric duration/price
        """
        service_id = data.get("id", data.get("serviceId"))
        name = data.get("name")
        if service_id is None or not name:
            raise ValueError(f"Invalid service entry: {data!r}")
        try:
            duration = int(data.get("duration", 0) or 0)
            price = float(data.get("price", 0) or 0)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid service entry: {data!r}") from e
        return cls(id=str(service_id), name=str(name), duration=duration, price=price)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "duration": self.duration,
            "price": self.price,
        }


@dataclass
class ConfirmedBooking:
    """Finalized booking handed to the persistence collaborator."""

    caller_id: str
    caller_name: str
    tenant_id: str
    service: ServiceOffering
    date: str  # DD/MM/YYYY as typed by the caller
    time: str  # HH:MM
    price: float
    created_at: datetime = field(default_factory=_utcnow)
    remote_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "caller_id": self.caller_id,
            "caller_name": self.caller_name,
            "tenant_id": self.tenant_id,
            "service": self.service.to_dict(),
            "date": self.date,
            "time": self.time,
            "price": self.price,
            "created_at": self.created_at.isoformat(),
            "remote_id": self.remote_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConfirmedBooking":
        return cls(
            caller_id=data["caller_id"],
            caller_name=data.get("caller_name", ""),
            tenant_id=data["tenant_id"],
            service=ServiceOffering.from_dict(data["service"]),
            date=data["date"],
            time=data["time"],
            price=data.get("price", 0.0),
            created_at=_parse_dt(data.get("created_at")) or _utcnow(),
            remote_id=data.get("remote_id"),
        )


@dataclass
class BookingSession:
    """
    One caller's in-progress booking conversation.

    Mutated only by the booking flow; stored and expired by the
    SessionManager. `offered_services` is the catalog snapshot shown in the
    first prompt and `available_slots` the slot list shown for the chosen
    date; selections by number index into these, never into a fresh fetch.
    """

    caller_id: str
    tenant_id: str
    display_name: str = ""
    state: BookingState = BookingState.ASKING_SERVICE

    offered_services: list[ServiceOffering] = field(default_factory=list)
    service: Optional[ServiceOffering] = None
    period: Optional[str] = None  # "morning" | "afternoon"
    date: Optional[str] = None  # DD/MM/YYYY
    time: Optional[str] = None  # HH:MM
    available_slots: Optional[list[str]] = None

    booking_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return is_terminal_state(self.state)

    def to_confirmed_booking(self) -> ConfirmedBooking:
        """Build the hand-off record. Only valid once service, date and time are bound."""
        if self.service is None or self.date is None or self.time is None:
            raise ValueError(f"Session {self.caller_id} is not ready for confirmation")
        return ConfirmedBooking(
            caller_id=self.caller_id,
            caller_name=self.display_name,
            tenant_id=self.tenant_id,
            service=self.service,
            date=self.date,
            time=self.time,
            price=self.service.price,
        )

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        data: dict[str, Any] = {
            "caller_id": self.caller_id,
            "tenant_id": self.tenant_id,
            "display_name": self.display_name,
            "state": self.state.value,
            "offered_services": [s.to_dict() for s in self.offered_services],
            "service": self.service.to_dict() if self.service else None,
            "period": self.period,
            "date": self.date,
            "time": self.time,
            "available_slots": self.available_slots,
            "booking_id": self.booking_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "BookingSession":
        """Create from JSON string."""
        data = json.loads(json_str)
        service = data.get("service")
        return cls(
            caller_id=data["caller_id"],
            tenant_id=data["tenant_id"],
            display_name=data.get("display_name", ""),
            state=BookingState(data["state"]),
            offered_services=[
                ServiceOffering.from_dict(s) for s in data.get("offered_services", [])
            ],
            service=ServiceOffering.from_dict(service) if service else None,
            period=data.get("period"),
            date=data.get("date"),
            time=data.get("time"),
            available_slots=data.get("available_slots"),
            booking_id=data.get("booking_id"),
            created_at=_parse_dt(data.get("created_at")) or _utcnow(),
            updated_at=_parse_dt(data.get("updated_at")) or _utcnow(),
            completed_at=_parse_dt(data.get("completed_at")),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
