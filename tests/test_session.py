"""Tests for the session composition root."""

import pytest

from ticketflow.config import settings
from ticketflow.payment.orchestrator import INITIATE_PATH
from ticketflow.payment.poller import DisplayStatus, ViewState
from ticketflow.schemas.booking_schema import BookingStatus
from ticketflow.schemas.payment_schema import RecoveryRecord
from ticketflow.search.engine import SEARCH_PATH
from ticketflow.seats.channel import ChannelState
from ticketflow.session import BookingSession
from tests.conftest import booking_payload, make_booking, schedule_payload, serve_route_points

LOOKUP_PATH = "bookings/reference/BK-2024-0007"


@pytest.fixture
def session(server, recovery_store):
    navigated = []
    session = BookingSession(
        config=settings,
        transport=server.transport,
        navigator=navigated.append,
        recovery_store=recovery_store,
    )
    session.navigated = navigated
    return session


class TestWiring:
    def test_shared_board(self, session):
        assert session.search_engine.board is session.board
        assert session.channel.board is session.board

    def test_shared_route_points(self, session):
        assert session.search_engine.route_points is session.route_points

    @pytest.mark.asyncio
    async def test_anonymous_session_has_no_channel(self, session, server):
        async with session:
            assert session.channel.state == ChannelState.DISCONNECTED
        assert server.requests == []


class TestWatchedSchedules:
    @pytest.mark.asyncio
    async def test_search_subscribes_results(self, session, server):
        serve_route_points(server)
        server.on("GET", SEARCH_PATH, json=[schedule_payload(schedule_id=1), schedule_payload(schedule_id=2)])
        await session.search(1, 2, "2024-06-01")
        assert session.channel.subscriptions == frozenset({1, 2})

    @pytest.mark.asyncio
    async def test_new_search_replaces_subscriptions(self, session, server):
        serve_route_points(server)
        server.on("GET", SEARCH_PATH, json=[schedule_payload(schedule_id=1), schedule_payload(schedule_id=2)])
        await session.search(1, 2, "2024-06-01")

        server.on("GET", SEARCH_PATH, json=[schedule_payload(schedule_id=2), schedule_payload(schedule_id=3)])
        await session.search_from_query(
            {"originId": "1", "destinationId": "2", "departureDate": "2024-06-02"}
        )
        assert session.channel.subscriptions == frozenset({2, 3})


class TestResume:
    @pytest.mark.asyncio
    async def test_nothing_to_resume(self, session, server):
        resumed = await session.resume_after_redirect()
        assert resumed.record is None
        assert resumed.booking is None
        assert resumed.view.state == ViewState.NO_REFERENCE
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_resume_checks_status_and_refreshes_booking(self, session, server, recovery_store):
        recovery_store.save_best_effort(RecoveryRecord(
            id=7, booking_reference="BK-2024-0007", phone_number="0788123456",
            email="jane@example.com", transaction_reference="TXN-1001",
        ))
        server.on("GET", "payments/status/TXN-1001", json={"status": "SUCCESS"})
        server.on("GET", LOOKUP_PATH, json=booking_payload(status="CONFIRMED"))

        resumed = await session.resume_after_redirect()

        assert resumed.record.booking_reference == "BK-2024-0007"
        assert resumed.view.display_status == DisplayStatus.SUCCESS
        assert resumed.booking.status == BookingStatus.CONFIRMED
        assert resumed.booking_error is None
        assert recovery_store.load() is None

    @pytest.mark.asyncio
    async def test_lookup_by_email_when_no_phone(self, session, server, recovery_store):
        recovery_store.save_best_effort(RecoveryRecord(
            id=7, booking_reference="BK-2024-0007", email="jane@example.com",
            transaction_reference="TXN-1001",
        ))
        server.on("GET", "payments/status/TXN-1001", json={"status": "PENDING"})
        server.on("GET", LOOKUP_PATH, json=booking_payload(phone_number=None))

        resumed = await session.resume_after_redirect()

        assert resumed.booking.id == 7
        assert resumed.view.can_cancel

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_payment_view(self, session, server, recovery_store):
        recovery_store.save_best_effort(RecoveryRecord(
            id=7, booking_reference="BK-2024-0007", phone_number="0788123456",
            transaction_reference="TXN-1001",
        ))
        server.on("GET", "payments/status/TXN-1001", json={"status": "SUCCESS"})
        server.on("GET", LOOKUP_PATH, status=503, json={"message": "Service unavailable"})

        resumed = await session.resume_after_redirect()

        assert resumed.booking is None
        assert resumed.booking_error == "Service unavailable"
        assert resumed.view.display_status == DisplayStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_record_without_reference_or_contact(self, session, server, recovery_store):
        recovery_store.save_best_effort(RecoveryRecord(id=7, booking_reference="BK-2024-0007"))
        resumed = await session.resume_after_redirect()
        assert resumed.record.id == 7
        assert resumed.booking is None
        assert resumed.view.state == ViewState.NO_REFERENCE
        assert server.requests == []


class TestPaymentFactory:
    def test_fresh_flow_each_time(self, session):
        assert session.payment() is not session.payment()

    @pytest.mark.asyncio
    async def test_redirect_then_resume(self, session, server):
        server.on("POST", INITIATE_PATH, json={
            "status": "PENDING",
            "requiresRedirect": True,
            "redirectUrl": "https://pay.example.com/session/abc",
            "transactionReference": "TXN-1001",
        })
        server.on("GET", "payments/status/TXN-1001", json={"status": "PENDING"})
        server.on("GET", LOOKUP_PATH, json=booking_payload())

        await session.payment().initiate(make_booking(), "STRIPE")
        resumed = await session.resume_after_redirect()

        assert session.navigated == ["https://pay.example.com/session/abc"]
        assert resumed.record.transaction_reference == "TXN-1001"
        assert resumed.record.phone_number == "0788123456"
        assert resumed.booking.booking_reference == "BK-2024-0007"
        assert resumed.view.can_cancel
