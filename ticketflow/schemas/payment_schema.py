"""Payment wire models, contact details, and the redirect recovery record."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

from ticketflow.schemas.schedule_schema import WireModel

ERROR_STATUS = "ERROR"


def _status_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(value)


# Null and non-string statuses are kept and read as unknown.
StatusText = Annotated[Optional[str], BeforeValidator(_status_text)]


def normalize_status(status: Optional[str]) -> str:
    return (status or "").strip().upper()


class PaymentMethod(str, Enum):
    STRIPE = "STRIPE"
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"

    @property
    def is_card(self) -> bool:
        return self is PaymentMethod.STRIPE


class TransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class ContactInfo(WireModel):
    customer_name: str = ""
    email: Optional[str] = None
    phone_number: Optional[str] = None


class PaymentInitiationRequest(WireModel):
    booking_id: int
    amount: float
    payment_method: PaymentMethod
    currency: str
    description: str
    email: Optional[str] = None
    customer_name: Optional[str] = None

    def to_payload(self) -> dict:
        # email and customerName are sent as explicit nulls
        return self.model_dump(mode="json", by_alias=True)


class PaymentInitiationResponse(WireModel):
    """Gateway answer to an initiation; exactly one outcome branch applies."""

    status: StatusText = None
    message: Optional[str] = None
    requires_redirect: bool = False
    redirect_url: Optional[str] = None
    transaction_reference: Optional[str] = None
    instructions: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return normalize_status(self.status) == ERROR_STATUS

    @property
    def is_redirect(self) -> bool:
        return self.requires_redirect and bool(self.redirect_url)

    @property
    def is_success(self) -> bool:
        return normalize_status(self.status) == TransactionStatus.SUCCESS.value


class PaymentTransaction(WireModel):
    """Observed state of a payment; only the remote system mutates it."""

    transaction_reference: str
    booking_id: Optional[int] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    status: StatusText = None
    message: Optional[str] = None
    requires_redirect: bool = False
    redirect_url: Optional[str] = None
    instructions: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecoveryRecord(WireModel):
    """Minimal data needed to re-identify a booking after a redirect."""

    id: int
    booking_reference: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    transaction_reference: Optional[str] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
