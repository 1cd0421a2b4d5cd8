"""
Composition root wiring the orchestration core together.

Every collaborator is constructed here and handed to its consumers by
reference: one API client, one seat board shared by the search engine
and the seat channel, one recovery store. Nothing is looked up from a
global registry.

Usage:
    async with BookingSession(token_provider=auth.token) as session:
        result = await session.search(1, 2, "2024-06-01")
        booking = await session.bookings.create_booking(request, result.schedules[0])
        payment = session.payment(on_success=show_ticket)
        await payment.initiate(booking, "STRIPE")
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from ticketflow.api.client import ApiClient, TokenProvider
from ticketflow.booking.orchestrator import BookingOrchestrator
from ticketflow.config import AppConfig, settings
from ticketflow.errors import TicketflowError
from ticketflow.logging_context import get_flow_logger, new_flow_id
from ticketflow.payment.orchestrator import (
    CancelCallback,
    Navigator,
    PaymentOrchestrator,
    SuccessCallback,
    open_in_browser,
)
from ticketflow.payment.poller import PaymentStatusPoller, PaymentStatusView, ViewState
from ticketflow.recovery.store import RecoveryStore
from ticketflow.schemas.booking_schema import Booking
from ticketflow.schemas.payment_schema import RecoveryRecord
from ticketflow.search.engine import ScheduleSearchEngine, SearchResult
from ticketflow.search.route_points import RoutePointDirectory
from ticketflow.seats.board import SeatBoard
from ticketflow.seats.channel import SeatAvailabilityChannel

logger = get_flow_logger(__name__)


@dataclass(frozen=True)
class RedirectResume:
    """What is known about a flow picked up after a payment redirect."""

    record: Optional[RecoveryRecord]
    view: PaymentStatusView
    booking: Optional[Booking] = None
    booking_error: Optional[str] = None


class BookingSession:
    """Owns the collaborators for one traveler's session."""

    def __init__(
        self,
        config: AppConfig = settings,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        navigator: Navigator = open_in_browser,
        recovery_store: Optional[RecoveryStore] = None,
    ) -> None:
        self.config = config
        self.api = ApiClient(
            base_url=config.api.base_url,
            timeout_sec=config.api.timeout_sec,
            token_provider=token_provider,
            transport=transport,
        )
        self.board = SeatBoard()
        self.channel = SeatAvailabilityChannel(
            self.api,
            self.board,
            stream_path=config.seats.stream_path,
            read_timeout_sec=config.seats.read_timeout_sec,
        )
        self.route_points = RoutePointDirectory(self.api, config.api.route_points_path)
        self.search_engine = ScheduleSearchEngine(
            self.api,
            self.board,
            self.route_points,
            max_seats_per_booking=config.booking.max_seats_per_booking,
        )
        self.bookings = BookingOrchestrator(
            self.api,
            self.route_points,
            self.board,
            max_seats_per_booking=config.booking.max_seats_per_booking,
            guest_booking_path=config.api.guest_booking_path,
            customer_booking_path=config.api.customer_booking_path,
            booking_lookup_path=config.api.booking_lookup_path,
        )
        self.recovery = recovery_store or RecoveryStore(config.recovery.path, config.recovery.key)
        self.poller = PaymentStatusPoller(self.api)
        self._navigator = navigator
        self._watched: set[int] = set()

    async def __aenter__(self) -> "BookingSession":
        await self.channel.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.channel.disconnect()
        await self.api.aclose()

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def _watch(self, result: SearchResult) -> None:
        """Point the channel's interest set at the schedules now on screen."""
        current = {schedule.id for schedule in result.schedules}
        for schedule_id in self._watched - current:
            self.channel.unsubscribe(schedule_id)
        for schedule_id in current - self._watched:
            self.channel.subscribe(schedule_id)
        self._watched = current

    async def search(self, origin_id: Any, destination_id: Any, departure_date: Any) -> SearchResult:
        new_flow_id()
        result = await self.search_engine.search(origin_id, destination_id, departure_date)
        self._watch(result)
        return result

    async def search_from_query(self, query: Mapping[str, str]) -> SearchResult:
        new_flow_id()
        result = await self.search_engine.search_from_query(query)
        self._watch(result)
        return result

    # ------------------------------------------------------------------ #
    # Payment
    # ------------------------------------------------------------------ #

    def payment(
        self,
        on_success: Optional[SuccessCallback] = None,
        on_cancel: Optional[CancelCallback] = None,
        allow_cash: bool = False,
    ) -> PaymentOrchestrator:
        """A fresh payment flow; cash is only accepted where the caller allows it."""
        return PaymentOrchestrator(
            self.api,
            self.recovery,
            navigator=self._navigator,
            on_success=on_success,
            on_cancel=on_cancel,
            allow_cash=allow_cash,
            currency=self.config.payment.currency,
        )

    async def resume_after_redirect(self) -> RedirectResume:
        """Pick up a flow interrupted by a payment redirect.

        The recovery record is consumed, the payment status is checked, and
        the booking is re-fetched with the stored phone number or email so
        its post-payment status is current. A failed re-fetch is reported in
        ``booking_error`` alongside the payment view.
        """
        record = self.recovery.consume()
        if record is None:
            logger.info("No recovery record to resume from")
            return RedirectResume(record=None, view=PaymentStatusView(state=ViewState.NO_REFERENCE))
        logger.info("Resuming booking %s after redirect", record.booking_reference)
        view = await self.poller.check_status(record.transaction_reference)

        if not (record.phone_number or record.email):
            logger.info("No contact details stored for booking %s", record.booking_reference)
            return RedirectResume(record=record, view=view)
        try:
            booking = await self.bookings.find_by_reference(
                record.booking_reference, phone_number=record.phone_number, email=record.email
            )
        except TicketflowError as exc:
            logger.warning("Could not refresh booking %s: %s", record.booking_reference, exc.message)
            return RedirectResume(record=record, view=view, booking_error=exc.message)
        return RedirectResume(record=record, view=view, booking=booking)
