"""
Payment initiation for a Booking.

Submits the payment intent and branches on the gateway's answer, checked
in this order:

1. ``status == ERROR``      -> PaymentError, back to SELECTING_METHOD.
2. redirect required + URL  -> recovery record written, then navigation.
3. ``status == SUCCESS``    -> SUCCEEDED, success callback.
4. anything else            -> AWAITING_MANUAL_CONFIRMATION with instructions.

A cancel while the request is in flight wins: the late answer is logged
and nothing is written, navigated, or transitioned.

A redirect hands control away from this process entirely. Resumption
happens later through ``PaymentStatusPoller`` and the recovery record.
"""

import webbrowser
from dataclasses import dataclass
from typing import Callable, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.config import settings
from ticketflow.errors import NetworkError, PaymentError, ValidationError
from ticketflow.logging_context import get_flow_logger
from ticketflow.payment.state_machine import PaymentState, PaymentStateMachine, PaymentTrigger
from ticketflow.recovery.store import RecoveryStore
from ticketflow.schemas.booking_schema import Booking
from ticketflow.schemas.payment_schema import (
    ERROR_STATUS,
    ContactInfo,
    PaymentInitiationRequest,
    PaymentInitiationResponse,
    PaymentMethod,
    PaymentTransaction,
    RecoveryRecord,
    TransactionStatus,
    normalize_status,
)
from ticketflow.utils import is_blank

logger = get_flow_logger(__name__)

INITIATE_PATH = "payments/initiate"

Navigator = Callable[[str], None]
SuccessCallback = Callable[[Union[PaymentInitiationResponse, PaymentTransaction]], None]
CancelCallback = Callable[[], None]


def open_in_browser(url: str) -> None:
    """Default navigator: hand the redirect URL to the system browser."""
    webbrowser.open(url)


def _noop(*_args: object) -> None:
    return None


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of a successful submission (any of the three non-error branches)."""

    state: PaymentState
    response: PaymentInitiationResponse

    @property
    def transaction_reference(self) -> Optional[str]:
        return self.response.transaction_reference

    @property
    def instructions(self) -> Optional[str]:
        return self.response.instructions

    @property
    def redirect_url(self) -> Optional[str]:
        return self.response.redirect_url


def default_contact(booking: Booking) -> ContactInfo:
    customer = booking.customer
    return ContactInfo(
        customer_name=customer.full_name,
        email=customer.email or None,
        phone_number=customer.phone_number or None,
    )


class PaymentOrchestrator:
    """Drives one booking's payment from method selection to an outcome."""

    def __init__(
        self,
        api: ApiClient,
        recovery_store: RecoveryStore,
        navigator: Navigator = open_in_browser,
        on_success: Optional[SuccessCallback] = None,
        on_cancel: Optional[CancelCallback] = None,
        allow_cash: bool = False,
        currency: Optional[str] = None,
    ) -> None:
        self._api = api
        self._recovery = recovery_store
        self._navigate = navigator
        self._on_success = on_success or _noop
        self._on_cancel = on_cancel or _noop
        self._allow_cash = allow_cash
        self._currency = currency or settings.payment.currency
        self._machine = PaymentStateMachine()
        self._last_outcome: Optional[PaymentOutcome] = None

    @property
    def state(self) -> PaymentState:
        return self._machine.current_state

    @property
    def machine(self) -> PaymentStateMachine:
        return self._machine

    @property
    def last_outcome(self) -> Optional[PaymentOutcome]:
        return self._last_outcome

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def _parse_method(self, method: Union[PaymentMethod, str]) -> PaymentMethod:
        try:
            return PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {method!r}", field="payment_method") from None

    def validate(self, method: PaymentMethod, contact: ContactInfo) -> None:
        if method.is_card and is_blank(contact.email):
            raise ValidationError("Email is required for card payment", field="email")
        if method is PaymentMethod.CASH and not self._allow_cash:
            raise ValidationError(
                "Cash payment is not allowed for online bookings", field="payment_method"
            )
        if is_blank(contact.customer_name):
            raise ValidationError("Customer name is required", field="customer_name")

    def build_request(
        self, booking: Booking, method: PaymentMethod, contact: ContactInfo
    ) -> PaymentInitiationRequest:
        return PaymentInitiationRequest(
            booking_id=booking.id,
            amount=booking.total_amount,
            payment_method=method,
            currency=self._currency,
            description=booking.route_description,
            email=contact.email.strip() if method.is_card and contact.email else None,
            customer_name=contact.customer_name.strip() or None,
        )

    # ------------------------------------------------------------------ #
    # Initiation
    # ------------------------------------------------------------------ #

    def _reject(self, message: str) -> PaymentError:
        self._machine.transition(PaymentTrigger.SUBMIT_REJECTED)
        logger.warning("Payment initiation rejected: %s", message)
        return PaymentError(message)

    async def initiate(
        self,
        booking: Booking,
        method: Union[PaymentMethod, str],
        contact: Optional[ContactInfo] = None,
    ) -> PaymentOutcome:
        if not self._machine.can(PaymentTrigger.SUBMIT):
            raise PaymentError(
                f"Payment cannot be submitted while {self.state.value.replace('_', ' ')}"
            )

        method = self._parse_method(method)
        contact = contact or default_contact(booking)
        self.validate(method, contact)
        request = self.build_request(booking, method, contact)

        self._machine.transition(PaymentTrigger.SUBMIT)
        logger.info(
            "Initiating %s payment of %s %s for booking %s",
            method.value, request.amount, request.currency, booking.booking_reference,
        )
        try:
            data = await self._api.post(INITIATE_PATH, json=request.to_payload())
        except NetworkError as exc:
            if self._left_submitting():
                return self._late_outcome(booking, None)
            payload = exc.payload if isinstance(exc.payload, dict) else {}
            if str(payload.get("status", "")).upper() == ERROR_STATUS or (
                exc.status_code is not None and exc.status_code < 500
            ):
                raise self._reject(exc.message or "Payment initiation failed") from exc
            self._machine.transition(PaymentTrigger.SUBMIT_REJECTED)
            raise

        if self._left_submitting():
            return self._late_outcome(booking, data)

        try:
            response = PaymentInitiationResponse.model_validate(data or {})
        except SchemaValidationError as exc:
            self._machine.transition(PaymentTrigger.SUBMIT_REJECTED)
            raise NetworkError("Received malformed payment data from the server.") from exc

        if response.is_error:
            raise self._reject(response.message or "Payment initiation failed")

        if response.is_redirect:
            return self._redirect(booking, response)

        if response.is_success:
            self._machine.transition(PaymentTrigger.PAYMENT_SUCCEEDED)
            outcome = self._record(response)
            logger.info("Payment %s succeeded immediately", response.transaction_reference)
            self._on_success(response)
            return outcome

        self._machine.transition(PaymentTrigger.MANUAL_CONFIRMATION_REQUIRED)
        logger.info(
            "Payment %s awaiting manual confirmation", response.transaction_reference
        )
        return self._record(response)

    def _left_submitting(self) -> bool:
        """True when the flow was cancelled while the initiation was in flight."""
        return self._machine.current_state is not PaymentState.SUBMITTING

    def _late_outcome(self, booking: Booking, data: object) -> PaymentOutcome:
        """Report an answer that arrived after the flow moved on; nothing is applied."""
        try:
            response = PaymentInitiationResponse.model_validate(data or {})
        except SchemaValidationError:
            response = PaymentInitiationResponse()
        logger.info(
            "Ignoring late payment response %s for booking %s; flow is %s",
            response.transaction_reference, booking.booking_reference, self.state.value,
        )
        return PaymentOutcome(state=self.state, response=response)

    def _record(self, response: PaymentInitiationResponse) -> PaymentOutcome:
        outcome = PaymentOutcome(state=self.state, response=response)
        self._last_outcome = outcome
        return outcome

    def _redirect(
        self, booking: Booking, response: PaymentInitiationResponse
    ) -> PaymentOutcome:
        record = RecoveryRecord(
            id=booking.id,
            booking_reference=booking.booking_reference,
            phone_number=booking.customer.phone_number or None,
            email=booking.customer.email or None,
            transaction_reference=response.transaction_reference,
        )
        # fire-and-forget: the store logs failures and navigation proceeds either way
        self._recovery.save_best_effort(record)

        self._machine.transition(PaymentTrigger.REDIRECT_REQUIRED)
        outcome = self._record(response)
        logger.info("Redirecting to payment gateway for booking %s", booking.booking_reference)
        self._navigate(response.redirect_url)
        return outcome

    # ------------------------------------------------------------------ #
    # Cancellation and resolution
    # ------------------------------------------------------------------ #

    def cancel(self) -> PaymentState:
        """Abandon the payment locally. No request is sent."""
        self._machine.transition(PaymentTrigger.CANCEL)
        logger.info("Payment cancelled by user")
        self._on_cancel()
        return self.state

    def retry(self) -> PaymentState:
        """Go back to method selection after a failure."""
        return self._machine.transition(PaymentTrigger.RETRY)

    def apply_status(self, transaction: PaymentTransaction) -> PaymentState:
        """Resolve a pending outcome from a polled transaction."""
        status = normalize_status(transaction.status)
        if status == TransactionStatus.SUCCESS.value and self._machine.can(PaymentTrigger.PAYMENT_SUCCEEDED):
            self._machine.transition(PaymentTrigger.PAYMENT_SUCCEEDED)
            self._on_success(transaction)
        elif status == TransactionStatus.FAILED.value and self._machine.can(PaymentTrigger.PAYMENT_FAILED):
            self._machine.transition(PaymentTrigger.PAYMENT_FAILED)
        elif status == TransactionStatus.CANCELLED.value and self._machine.can(PaymentTrigger.CANCEL):
            self._machine.transition(PaymentTrigger.CANCEL)
        return self.state
