"""
Booking creation for guests and authenticated customers.

Validate -> Submit -> Handle result. Validation is local and runs before
any request leaves the process; a server rejection (typically seats
running out between search and submit) surfaces as ``BookingError`` and
the caller is expected to search again. There is no local retry.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.config import settings
from ticketflow.errors import BookingError, NetworkError, ValidationError
from ticketflow.logging_context import get_flow_logger
from ticketflow.schemas.booking_schema import (
    Booking,
    BookingRequest,
    CustomerBookingRequest,
    GuestBookingRequest,
)
from ticketflow.schemas.schedule_schema import Schedule, ScheduleStatus
from ticketflow.search.route_points import RoutePointDirectory
from ticketflow.seats.board import SeatBoard
from ticketflow.utils import is_blank, looks_like_email, normalize_phone

logger = get_flow_logger(__name__)

MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15


class BookingFlowState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    CREATED = "created"


class BookingOrchestrator:
    """Turns a validated booking request into a server-assigned Booking."""

    def __init__(
        self,
        api: ApiClient,
        route_points: RoutePointDirectory,
        board: Optional[SeatBoard] = None,
        max_seats_per_booking: Optional[int] = None,
        guest_booking_path: Optional[str] = None,
        customer_booking_path: Optional[str] = None,
        booking_lookup_path: Optional[str] = None,
    ) -> None:
        self._api = api
        self._route_points = route_points
        self._board = board or SeatBoard()
        self._max_seats = max_seats_per_booking or settings.booking.max_seats_per_booking
        self._guest_path = guest_booking_path or settings.api.guest_booking_path
        self._customer_path = customer_booking_path or settings.api.customer_booking_path
        self._lookup_path = booking_lookup_path or settings.api.booking_lookup_path
        self._state = BookingFlowState.IDLE
        self._last_booking: Optional[Booking] = None

    @property
    def state(self) -> BookingFlowState:
        return self._state

    @property
    def last_booking(self) -> Optional[Booking]:
        return self._last_booking

    def seat_cap(self, schedule: Schedule) -> int:
        return min(self._board.effective_available_seats(schedule), self._max_seats)

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def _validate_identity(self, request: BookingRequest) -> None:
        if isinstance(request, GuestBookingRequest):
            missing = [
                name
                for name, value in [
                    ("first_name", request.first_name),
                    ("last_name", request.last_name),
                    ("phone_number", request.phone_number),
                ]
                if is_blank(value)
            ]
            if missing:
                raise ValidationError(
                    f"Missing required fields: {', '.join(missing)}.", field=missing[0]
                )
            digits = re.sub(r"[^\d]", "", request.phone_number)
            if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
                raise ValidationError("Phone number doesn't look right.", field="phone_number")
            if not is_blank(request.email) and not looks_like_email(request.email):
                raise ValidationError("Email address doesn't look right.", field="email")
        elif request.customer_id is None:
            raise ValidationError("Please log in to book tickets.", field="customer_id")

    async def validate(self, request: BookingRequest, schedule: Schedule) -> None:
        """Raise ValidationError when the request cannot be submitted.

        Route points that cannot be loaded raise NetworkError instead; an
        outage is never reported as a bad pickup or drop point.
        """
        self._validate_identity(request)

        if request.schedule_id != schedule.id:
            raise ValidationError("Booking does not match the selected schedule.", field="schedule_id")
        if schedule.status != ScheduleStatus.SCHEDULED:
            raise ValidationError(
                f"This schedule is {schedule.status.value.lower()} and cannot be booked.",
                field="schedule_id",
            )

        cap = self.seat_cap(schedule)
        if cap < 1:
            raise ValidationError("No seats are available on this schedule.", field="number_of_seats")
        if not 1 <= request.number_of_seats <= cap:
            raise ValidationError(
                f"Number of seats must be between 1 and {cap}.", field="number_of_seats"
            )

        origin_points = await self._route_points.point_ids_for(schedule.origin_id)
        if request.pickup_point_id not in origin_points:
            raise ValidationError(
                f"Pickup point must be in {schedule.origin.name or 'the origin district'}.",
                field="pickup_point_id",
            )
        destination_points = await self._route_points.point_ids_for(schedule.destination_id)
        if request.drop_point_id not in destination_points:
            raise ValidationError(
                f"Drop point must be in {schedule.destination.name or 'the destination district'}.",
                field="drop_point_id",
            )

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def _endpoint(self, request: BookingRequest) -> str:
        if isinstance(request, CustomerBookingRequest):
            return self._customer_path
        return self._guest_path

    def _payload(self, request: BookingRequest) -> dict:
        payload = request.to_payload()
        if isinstance(request, GuestBookingRequest):
            payload["customerPhoneNumber"] = normalize_phone(request.phone_number)
        return payload

    async def create_booking(self, request: BookingRequest, schedule: Schedule) -> Booking:
        """Validate and submit. Every failure path leaves the flow IDLE."""
        if self._state in (BookingFlowState.VALIDATING, BookingFlowState.SUBMITTING):
            raise BookingError("A booking is already being submitted.")

        self._state = BookingFlowState.VALIDATING
        try:
            await self.validate(request, schedule)

            self._state = BookingFlowState.SUBMITTING
            endpoint = self._endpoint(request)
            logger.info(
                "Submitting %s booking for schedule %s (%d seats)",
                "guest" if request.is_guest else "customer",
                schedule.id, request.number_of_seats,
            )
            try:
                data = await self._api.post(endpoint, json=self._payload(request))
            except NetworkError as exc:
                # 4xx, or a 2xx envelope with success=false
                if exc.status_code is not None and exc.status_code < 500:
                    raise BookingError(exc.message or "Failed to create booking") from exc
                raise

            try:
                booking = Booking.model_validate(data)
            except SchemaValidationError as exc:
                logger.warning("Malformed booking in response: %s", exc)
                raise NetworkError("Received malformed booking data from the server.") from exc
        except BaseException:
            self._state = BookingFlowState.IDLE
            raise

        if booking.total_amount != booking.expected_total():
            logger.warning(
                "Booking %s total %s differs from price x seats = %s",
                booking.booking_reference, booking.total_amount, booking.expected_total(),
            )
        self._last_booking = booking
        self._state = BookingFlowState.CREATED
        logger.info(
            "Booking created: %s (%d seats, total %s)",
            booking.booking_reference, booking.number_of_seats, booking.total_amount,
        )
        return booking

    def reset(self) -> None:
        """Return to IDLE for the next booking."""
        self._state = BookingFlowState.IDLE
        self._last_booking = None

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    async def find_by_reference(
        self,
        reference: str,
        phone_number: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Booking:
        """Fetch a booking by reference, checked against the traveler's contact.

        The phone number is compared when given, otherwise the email. This is
        how a guest gets their ticket back, e.g. after a payment redirect.
        """
        if is_blank(reference):
            raise ValidationError("Please enter a booking reference.", field="booking_reference")
        if is_blank(phone_number) and is_blank(email):
            raise ValidationError("Please enter your phone number or email.", field="phone_number")

        reference = reference.strip()
        logger.info("Looking up booking %s", reference)
        try:
            data = await self._api.get(self._lookup_path.format(reference=reference))
        except NetworkError as exc:
            if exc.status_code is not None and exc.status_code < 500:
                raise BookingError(exc.message or "Booking not found") from exc
            raise
        try:
            booking = Booking.model_validate(data)
        except SchemaValidationError as exc:
            logger.warning("Malformed booking in lookup response: %s", exc)
            raise NetworkError("Received malformed booking data from the server.") from exc

        customer = booking.customer
        if not is_blank(phone_number):
            wanted = normalize_phone(phone_number)
            matches = bool(wanted) and normalize_phone(customer.phone_number or "") == wanted
        else:
            matches = (customer.email or "").strip().lower() == email.strip().lower()
        if not matches:
            logger.warning("Contact details do not match booking %s", reference)
            raise BookingError("Booking reference does not match the provided contact information")

        logger.info("Booking %s found with status %s", reference, booking.status.value)
        return booking
