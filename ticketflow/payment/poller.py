"""
On-demand payment status resolution by transaction reference.

Used after a redirect-return or when the traveler presses refresh. A
failed check exposes the error and a manual retry; there is no automatic
retry loop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.errors import NetworkError, PaymentError
from ticketflow.logging_context import get_flow_logger
from ticketflow.schemas.payment_schema import (
    PaymentTransaction,
    TransactionStatus,
    normalize_status,
)
from ticketflow.utils import is_blank

logger = get_flow_logger(__name__)

STATUS_FALLBACK_MESSAGE = "Failed to check payment status"


class DisplayStatus(str, Enum):
    """Fixed display taxonomy; anything unrecognised is UNKNOWN."""

    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_status(cls, value: Optional[str]) -> "DisplayStatus":
        try:
            return cls(TransactionStatus(normalize_status(value)).value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES: dict[DisplayStatus, str] = {
    DisplayStatus.SUCCESS: "Payment completed successfully",
    DisplayStatus.PENDING: "Payment is being processed",
    DisplayStatus.FAILED: "Payment failed",
    DisplayStatus.REFUNDED: "Payment has been refunded",
    DisplayStatus.CANCELLED: "Payment was cancelled",
    DisplayStatus.UNKNOWN: "Unknown payment status",
}


class ViewState(str, Enum):
    NO_REFERENCE = "no_reference"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class PaymentStatusView:
    state: ViewState
    transaction: Optional[PaymentTransaction] = None
    error: Optional[str] = None

    @property
    def display_status(self) -> DisplayStatus:
        if self.transaction is None:
            return DisplayStatus.UNKNOWN
        return DisplayStatus.from_status(self.transaction.status)

    @property
    def can_retry(self) -> bool:
        return self.state == ViewState.ERROR

    @property
    def can_cancel(self) -> bool:
        return self.state == ViewState.LOADED and self.display_status == DisplayStatus.PENDING


class PaymentStatusPoller:
    """Reads, never mutates, the remote payment state."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api
        self._reference: Optional[str] = None
        self._view = PaymentStatusView(state=ViewState.NO_REFERENCE)

    @property
    def view(self) -> PaymentStatusView:
        return self._view

    async def check_status(self, transaction_reference: Optional[str]) -> PaymentStatusView:
        if is_blank(transaction_reference):
            self._reference = None
            self._view = PaymentStatusView(state=ViewState.NO_REFERENCE)
            return self._view

        reference = transaction_reference.strip()
        self._reference = reference
        self._view = PaymentStatusView(state=ViewState.LOADING)
        logger.info("Checking payment status for %s", reference)
        try:
            data = await self._api.get(f"payments/status/{reference}")
            transaction = PaymentTransaction.model_validate(
                {"transactionReference": reference, **(data or {})}
            )
        except NetworkError as exc:
            logger.warning("Status check for %s failed: %s", reference, exc.message)
            self._view = PaymentStatusView(
                state=ViewState.ERROR, error=exc.message or STATUS_FALLBACK_MESSAGE
            )
            return self._view
        except SchemaValidationError as exc:
            logger.warning("Malformed status for %s: %s", reference, exc)
            self._view = PaymentStatusView(state=ViewState.ERROR, error=STATUS_FALLBACK_MESSAGE)
            return self._view

        self._view = PaymentStatusView(state=ViewState.LOADED, transaction=transaction)
        logger.info("Payment %s status: %s", reference, self._view.display_status.value)
        return self._view

    async def retry(self) -> PaymentStatusView:
        """Manually re-run the last check."""
        return await self.check_status(self._reference)

    async def cancel_payment(self) -> str:
        """Ask the server to cancel a PENDING payment. Returns the acknowledgement."""
        if not self._view.can_cancel:
            raise PaymentError("Only pending payments can be cancelled")
        transaction = self._view.transaction
        reference = transaction.transaction_reference
        logger.info("Cancelling payment %s", reference)
        try:
            acknowledgement = await self._api.get(f"payments/cancel/{reference}")
        except NetworkError as exc:
            raise PaymentError(exc.message or "Payment cancellation failed") from exc

        await self.check_status(reference)
        if isinstance(acknowledgement, str) and acknowledgement.strip():
            return acknowledgement
        return "Payment cancelled successfully"
