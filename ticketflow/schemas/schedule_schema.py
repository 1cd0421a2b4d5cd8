"""Schedule snapshots and the push events that overlay their seat counts."""

from datetime import date, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ticketflow.utils import minutes_since_midnight

SEAT_UPDATE_EVENT = "SEAT_UPDATE"


class WireModel(BaseModel):
    """Base for models exchanged with the booking server (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ScheduleStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    CANCELLED = "CANCELLED"


class District(WireModel):
    id: int
    name: str = ""


class RoutePoint(WireModel):
    """Pickup or drop location inside a district."""
    id: int
    name: str = ""
    gps_lat: Optional[float] = None
    gps_long: Optional[float] = None
    district: Optional[District] = None


class Route(WireModel):
    id: Optional[int] = None
    origin: District
    destination: District


class Agency(WireModel):
    id: Optional[int] = None
    agency_name: str = ""


class AgencyRoute(WireModel):
    """An agency's priced offering of a route."""
    id: Optional[int] = None
    route: Route
    agency: Optional[Agency] = None
    price: float = Field(ge=0)


class Bus(WireModel):
    id: Optional[int] = None
    plate_number: Optional[str] = None
    bus_type: Optional[str] = None
    capacity: Optional[int] = None


class Schedule(WireModel):
    """Read-only server snapshot of one departure."""

    id: int
    agency_route: AgencyRoute
    bus: Optional[Bus] = None
    departure_date: date
    departure_time: time
    arrival_time: Optional[time] = None
    available_seats: int = Field(ge=0)
    status: ScheduleStatus = ScheduleStatus.SCHEDULED

    @property
    def price(self) -> float:
        return self.agency_route.price

    @property
    def origin(self) -> District:
        return self.agency_route.route.origin

    @property
    def destination(self) -> District:
        return self.agency_route.route.destination

    @property
    def origin_id(self) -> int:
        return self.origin.id

    @property
    def destination_id(self) -> int:
        return self.destination.id

    @property
    def departure_minutes(self) -> int:
        return minutes_since_midnight(self.departure_time)


class SeatUpdateEvent(WireModel):
    """``{type, scheduleId, availableSeats}`` frame from the push channel.

    ``available_seats`` is kept exactly as received, negative values included.
    ``sequence`` and ``timestamp`` are optional; when present they order
    events for the same schedule.
    """

    type: str
    schedule_id: int
    available_seats: int
    sequence: Optional[int] = None
    timestamp: Optional[int] = None

    @property
    def ordering_key(self) -> Optional[int]:
        if self.sequence is not None:
            return self.sequence
        return self.timestamp
