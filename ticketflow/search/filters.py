"""
Client-side filtering and ordering of a search result.

Pure functions over an in-memory list: nothing here touches the network
or mutates its input, so the same result set can be re-filtered and
re-sorted any number of times. Filtering runs first, then sorting.
"""

from enum import Enum
from typing import Optional, Sequence, Union

from ticketflow.schemas.schedule_schema import Schedule
from ticketflow.utils import minutes_since_midnight


class TimeOfDay(str, Enum):
    """Departure time buckets, inclusive on both ends."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def bounds(self) -> tuple[int, int]:
        return _BUCKET_BOUNDS[self]

    def contains(self, minutes: int) -> bool:
        start, end = self.bounds
        return start <= minutes <= end


_BUCKET_BOUNDS: dict[TimeOfDay, tuple[int, int]] = {
    TimeOfDay.MORNING: (minutes_since_midnight("05:00"), minutes_since_midnight("12:00")),
    TimeOfDay.AFTERNOON: (minutes_since_midnight("12:30"), minutes_since_midnight("17:30")),
    TimeOfDay.EVENING: (minutes_since_midnight("18:00"), minutes_since_midnight("22:00")),
}


class SortOrder(str, Enum):
    PRICE = "price"  # cheapest first
    EARLY = "early"  # earliest departure first
    LATE = "late"  # latest departure first


def filter_by_time_of_day(
    schedules: Sequence[Schedule], time_of_day: Optional[Union[TimeOfDay, str]]
) -> list[Schedule]:
    if not time_of_day:
        return list(schedules)
    bucket = TimeOfDay(time_of_day)
    return [s for s in schedules if bucket.contains(s.departure_minutes)]


def sort_schedules(
    schedules: Sequence[Schedule], order: Optional[Union[SortOrder, str]]
) -> list[Schedule]:
    """Stable sort; ``None`` keeps the server-provided order."""
    if not order:
        return list(schedules)
    order = SortOrder(order)
    if order is SortOrder.PRICE:
        return sorted(schedules, key=lambda s: s.price)
    if order is SortOrder.EARLY:
        return sorted(schedules, key=lambda s: s.departure_minutes)
    return sorted(schedules, key=lambda s: s.departure_minutes, reverse=True)


def filter_and_sort(
    schedules: Sequence[Schedule],
    time_of_day: Optional[Union[TimeOfDay, str]] = None,
    sort: Optional[Union[SortOrder, str]] = None,
) -> list[Schedule]:
    return sort_schedules(filter_by_time_of_day(schedules, time_of_day), sort)
