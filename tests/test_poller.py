"""Tests for on-demand payment status checks."""

import httpx
import pytest

from ticketflow.errors import PaymentError
from ticketflow.payment.poller import (
    STATUS_FALLBACK_MESSAGE,
    DisplayStatus,
    PaymentStatusPoller,
    ViewState,
)

STATUS_PATH = "payments/status/TXN-1001"
CANCEL_PATH = "payments/cancel/TXN-1001"


def transaction(status, **extra) -> dict:
    return {
        "transactionReference": "TXN-1001",
        "bookingId": 7,
        "amount": 7000.0,
        "currency": "RWF",
        "paymentMethod": "STRIPE",
        "status": status,
        **extra,
    }


@pytest.fixture
def poller(api):
    return PaymentStatusPoller(api)


class TestDisplayStatus:
    @pytest.mark.parametrize("raw, expected", [
        ("SUCCESS", DisplayStatus.SUCCESS),
        ("pending", DisplayStatus.PENDING),
        ("FAILED", DisplayStatus.FAILED),
        ("REFUNDED", DisplayStatus.REFUNDED),
        ("CANCELLED", DisplayStatus.CANCELLED),
        ("ON_HOLD", DisplayStatus.UNKNOWN),
        ("", DisplayStatus.UNKNOWN),
        (None, DisplayStatus.UNKNOWN),
    ])
    def test_mapping(self, raw, expected):
        assert DisplayStatus.from_status(raw) == expected

    def test_every_status_has_a_message(self):
        assert all(status.message for status in DisplayStatus)
        assert DisplayStatus.UNKNOWN.message == "Unknown payment status"


class TestCheckStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reference", [None, "", "   "])
    async def test_no_reference(self, poller, server, reference):
        view = await poller.check_status(reference)
        assert view.state == ViewState.NO_REFERENCE
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_loaded(self, poller, server):
        server.on("GET", STATUS_PATH, json={"success": True, "data": transaction("SUCCESS")})
        view = await poller.check_status("TXN-1001")
        assert view.state == ViewState.LOADED
        assert view.display_status == DisplayStatus.SUCCESS
        assert view.transaction.amount == 7000.0
        assert not view.can_retry
        assert not view.can_cancel

    @pytest.mark.asyncio
    async def test_unrecognised_status_is_unknown(self, poller, server):
        server.on("GET", STATUS_PATH, json=transaction("CHARGEBACK"))
        view = await poller.check_status("TXN-1001")
        assert view.display_status == DisplayStatus.UNKNOWN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, 404, {"code": "X"}])
    async def test_unreadable_status_is_unknown_not_error(self, poller, server, raw):
        server.on("GET", STATUS_PATH, json=transaction(raw))
        view = await poller.check_status("TXN-1001")
        assert view.state == ViewState.LOADED
        assert view.display_status == DisplayStatus.UNKNOWN
        assert not view.can_cancel

    @pytest.mark.asyncio
    async def test_reference_filled_when_missing(self, poller, server):
        server.on("GET", STATUS_PATH, json={"status": "PENDING"})
        view = await poller.check_status("TXN-1001")
        assert view.transaction.transaction_reference == "TXN-1001"

    @pytest.mark.asyncio
    async def test_error_exposes_message_and_retry(self, poller, server):
        server.on("GET", STATUS_PATH, status=404, json={"message": "Transaction not found"})
        view = await poller.check_status("TXN-1001")
        assert view.state == ViewState.ERROR
        assert view.error == "Transaction not found"
        assert view.can_retry

    @pytest.mark.asyncio
    async def test_malformed_response_uses_fallback_message(self, poller, server):
        server.on("GET", STATUS_PATH, json={"status": "PENDING", "amount": "lots"})
        view = await poller.check_status("TXN-1001")
        assert view.state == ViewState.ERROR
        assert view.error == STATUS_FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_manual_retry(self, poller, server):
        server.on("GET", STATUS_PATH, status=503, json={"message": "Unavailable"})
        assert (await poller.check_status("TXN-1001")).state == ViewState.ERROR

        server.on("GET", STATUS_PATH, json=transaction("PENDING"))
        view = await poller.retry()
        assert view.state == ViewState.LOADED
        assert view.display_status == DisplayStatus.PENDING
        assert len(server.calls("GET", STATUS_PATH)) == 2


class TestCancelPayment:
    @pytest.mark.asyncio
    async def test_only_pending_can_be_cancelled(self, poller, server):
        server.on("GET", STATUS_PATH, json=transaction("SUCCESS"))
        await poller.check_status("TXN-1001")
        with pytest.raises(PaymentError, match="Only pending payments"):
            await poller.cancel_payment()
        assert server.calls("GET", CANCEL_PATH) == []

    @pytest.mark.asyncio
    async def test_cannot_cancel_without_a_check(self, poller):
        with pytest.raises(PaymentError):
            await poller.cancel_payment()

    @pytest.mark.asyncio
    async def test_cancel_pending_rechecks_status(self, poller, server):
        statuses = iter(["PENDING", "CANCELLED"])
        server.on("GET", STATUS_PATH, handler=lambda request: httpx.Response(
            200, json=transaction(next(statuses)),
        ))
        server.on("GET", CANCEL_PATH, json={"success": True, "message": "OK", "data": "Payment cancelled"})

        view = await poller.check_status("TXN-1001")
        assert view.can_cancel

        acknowledgement = await poller.cancel_payment()

        assert acknowledgement == "Payment cancelled"
        assert poller.view.display_status == DisplayStatus.CANCELLED
        assert len(server.calls("GET", CANCEL_PATH)) == 1

    @pytest.mark.asyncio
    async def test_cancel_rejected(self, poller, server):
        server.on("GET", STATUS_PATH, json=transaction("PENDING"))
        server.on("GET", CANCEL_PATH, status=400, json={"message": "Payment already settled"})
        await poller.check_status("TXN-1001")
        with pytest.raises(PaymentError, match="Payment already settled"):
            await poller.cancel_payment()
