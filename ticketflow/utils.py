"""Shared utilities used across the booking orchestration core."""

import re
from datetime import time
from typing import Union

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0788 123 456")
        '0788123456'
        >>> normalize_phone("+250 (788) 123-456")
        '+250788123456'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def is_blank(value: object) -> bool:
    """True for None, empty strings and whitespace-only strings."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def looks_like_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value.strip()))


def minutes_since_midnight(value: Union[str, time]) -> int:
    """Convert ``HH:MM`` / ``HH:MM:SS`` strings or ``time`` objects to minutes.

    Examples:
        >>> minutes_since_midnight("12:30")
        750
        >>> minutes_since_midnight("05:00:00")
        300
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    return int(parts[0]) * 60 + int(parts[1])
