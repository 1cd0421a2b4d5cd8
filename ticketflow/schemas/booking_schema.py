"""Booking request variants and the server-assigned booking handle."""

from enum import Enum
from typing import Optional, Union

from pydantic import Field, model_validator

from ticketflow.schemas.schedule_schema import RoutePoint, Schedule, WireModel


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Customer(WireModel):
    """Customer snapshot embedded in a booking."""
    id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone_number: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class _BookingRequestBase(WireModel):
    schedule_id: int
    pickup_point_id: int
    drop_point_id: int
    number_of_seats: int = 1


class GuestBookingRequest(_BookingRequestBase):
    """Booking made without an account; identity travels with the request."""

    first_name: str
    last_name: str
    phone_number: str
    email: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return True

    def to_payload(self) -> dict:
        return {
            "agentId": None,
            "scheduleId": self.schedule_id,
            "pickupPointId": self.pickup_point_id,
            "dropPointId": self.drop_point_id,
            "numberOfSeats": self.number_of_seats,
            "customerFirstName": self.first_name.strip(),
            "customerLastName": self.last_name.strip(),
            "customerEmail": self.email or None,
            "customerPhoneNumber": self.phone_number,
            "isGuestBooking": True,
        }


class CustomerBookingRequest(_BookingRequestBase):
    """Booking made by an authenticated customer."""

    customer_id: Optional[int] = None

    @property
    def is_guest(self) -> bool:
        return False

    def to_payload(self) -> dict:
        return {
            "customer": {"id": self.customer_id},
            "schedule": {"id": self.schedule_id},
            "pickupPoint": {"id": self.pickup_point_id},
            "dropPoint": {"id": self.drop_point_id},
            "numberOfSeats": self.number_of_seats,
        }


BookingRequest = Union[GuestBookingRequest, CustomerBookingRequest]


class Booking(WireModel):
    """Server-assigned booking handle consumed by the payment step."""

    id: int
    booking_reference: str
    customer: Customer = Field(default_factory=Customer)
    schedule: Schedule
    pickup_point: Optional[RoutePoint] = None
    drop_point: Optional[RoutePoint] = None
    number_of_seats: int = Field(ge=1)
    total_amount: Optional[float] = None
    status: BookingStatus = BookingStatus.PENDING
    payment_status: Optional[str] = None

    @model_validator(mode="after")
    def _derive_total(self) -> "Booking":
        if self.total_amount is None:
            self.total_amount = self.expected_total()
        return self

    def expected_total(self) -> float:
        return self.schedule.price * self.number_of_seats

    @property
    def route_description(self) -> str:
        pickup = self.pickup_point.district.name if self.pickup_point and self.pickup_point.district else ""
        drop = self.drop_point.district.name if self.drop_point and self.drop_point.district else ""
        return f"Bus ticket from {pickup or self.schedule.origin.name} to {drop or self.schedule.destination.name}"
