"""Error taxonomy shared by the search, booking, and payment flows."""

from typing import Any, Optional

GENERIC_NETWORK_MESSAGE = "Request failed. Please try again."
MAX_MESSAGE_LENGTH = 200


class TicketflowError(Exception):
    """Base class for every error surfaced to the traveler."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TicketflowError):
    """Local input problem detected before any network call."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NetworkError(TicketflowError):
    """Request failed, timed out, or came back with an error status."""

    def __init__(
        self,
        message: str = GENERIC_NETWORK_MESSAGE,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class BookingError(TicketflowError):
    """Server rejected a structurally valid booking (e.g. seats ran out)."""


class PaymentError(TicketflowError):
    """Payment gateway rejected the intent or the requested action."""


def _is_plain_text(value: Any) -> bool:
    """Short single-line text; markup such as a proxy's HTML error page is not."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    return bool(text) and len(text) <= MAX_MESSAGE_LENGTH and "\n" not in text and "<" not in text


def user_message(payload: Any, fallback: str) -> str:
    """Build user-visible text from a server payload, else the fallback."""
    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if _is_plain_text(value):
                return value.strip()
    elif _is_plain_text(payload):
        return payload.strip()
    return fallback
