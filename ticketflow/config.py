"""
Centralized configuration with environment variable overrides.

Endpoints, business limits, and storage locations are configurable here.
Nothing is hardcoded in the search, booking, or payment logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from ticketflow.logging_context import LOG_FORMAT, install_flow_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ApiConfig:
    """Booking server endpoints and HTTP behaviour."""

    base_url: str = os.getenv("TICKETFLOW_API_BASE_URL", "http://localhost:8080/api")
    timeout_sec: float = _safe_float("TICKETFLOW_HTTP_TIMEOUT", "30.0")
    guest_booking_path: str = os.getenv("TICKETFLOW_GUEST_BOOKING_PATH", "guest-bookings")
    customer_booking_path: str = os.getenv("TICKETFLOW_CUSTOMER_BOOKING_PATH", "bookings")
    booking_lookup_path: str = os.getenv(
        "TICKETFLOW_BOOKING_LOOKUP_PATH", "bookings/reference/{reference}"
    )
    route_points_path: str = os.getenv(
        "TICKETFLOW_ROUTE_POINTS_PATH", "admin/districts/{district_id}/points"
    )
    token: str = os.getenv("TICKETFLOW_TOKEN", "")


@dataclass(frozen=True)
class SeatChannelConfig:
    """Push channel carrying live seat counts."""

    stream_path: str = os.getenv("TICKETFLOW_SEAT_STREAM_PATH", "sse/seat-updates")
    read_timeout_sec: float = _safe_float("TICKETFLOW_SEAT_STREAM_READ_TIMEOUT", "90.0")


@dataclass(frozen=True)
class BookingConfig:
    """Reservation limits enforced before submitting to the server."""

    max_seats_per_booking: int = _safe_int("TICKETFLOW_MAX_SEATS_PER_BOOKING", "5")


@dataclass(frozen=True)
class PaymentConfig:
    """Payment initiation defaults."""

    currency: str = os.getenv("TICKETFLOW_CURRENCY", "RWF")


@dataclass(frozen=True)
class RecoveryConfig:
    """Location of the record that survives a payment redirect."""

    path: str = os.getenv("TICKETFLOW_RECOVERY_PATH", ".ticketflow/recovery.json")
    key: str = os.getenv("TICKETFLOW_RECOVERY_KEY", "lastBooking")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    api: ApiConfig = field(default_factory=ApiConfig)
    seats: SeatChannelConfig = field(default_factory=SeatChannelConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not config.api.base_url.strip():
        raise ValueError("TICKETFLOW_API_BASE_URL must not be empty")
    if config.api.timeout_sec <= 0:
        raise ValueError(
            f"TICKETFLOW_HTTP_TIMEOUT must be > 0, got {config.api.timeout_sec}"
        )
    if config.seats.read_timeout_sec <= 0:
        raise ValueError(
            "TICKETFLOW_SEAT_STREAM_READ_TIMEOUT must be > 0, "
            f"got {config.seats.read_timeout_sec}"
        )
    if config.booking.max_seats_per_booking < 1:
        raise ValueError(
            "TICKETFLOW_MAX_SEATS_PER_BOOKING must be >= 1, "
            f"got {config.booking.max_seats_per_booking}"
        )
    if not config.payment.currency.strip():
        raise ValueError("TICKETFLOW_CURRENCY must not be empty")

    for var_name, value, placeholder in [
        ("TICKETFLOW_BOOKING_LOOKUP_PATH", config.api.booking_lookup_path, "{reference}"),
        ("TICKETFLOW_ROUTE_POINTS_PATH", config.api.route_points_path, "{district_id}"),
    ]:
        if placeholder not in value:
            raise ValueError(f"{var_name} must contain {placeholder}, got {value!r}")

    for var_name, value in [
        ("TICKETFLOW_RECOVERY_PATH", config.recovery.path),
        ("TICKETFLOW_RECOVERY_KEY", config.recovery.key),
    ]:
        if not value.strip():
            raise ValueError(f"{var_name} must not be empty")

    if config.log_level.upper() not in _LOG_LEVELS:
        raise ValueError(
            f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {config.log_level!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_flow_id_filter()
    logger.info("Configuration loaded for API at '%s'", config.api.base_url)
    return config


# Singleton instance
settings = load_config()
