"""
Shared seat-count register for the schedules currently on screen.

Two writers feed it: the search engine records polled snapshots when a
search resolves, and the seat channel applies pushed events as they
arrive. Every write replaces the whole value for one schedule id, never
read-modify-write, so interleaving between the two writers on the event
loop cannot corrupt a count.

Merge rule: a pushed value, when present, takes priority over the polled
snapshot. Pushed events that carry ordering information (``sequence``, or
failing that ``timestamp``) are discarded when an event with a strictly
greater key was already applied for the same schedule; unordered events
always overwrite.
"""

import logging
from typing import Iterable, Optional

from ticketflow.schemas.schedule_schema import Schedule, ScheduleStatus, SeatUpdateEvent

logger = logging.getLogger(__name__)


class SeatBoard:
    """Per-schedule seat counts from polling and push, with push taking priority."""

    def __init__(self) -> None:
        self._polled: dict[int, int] = {}
        self._pushed: dict[int, int] = {}
        self._last_order: dict[int, tuple[str, int]] = {}

    def record_snapshot(self, schedules: Iterable[Schedule]) -> None:
        for schedule in schedules:
            self._polled[schedule.id] = schedule.available_seats

    def apply_push(self, event: SeatUpdateEvent) -> bool:
        """Store a pushed count. Returns False when the event is stale."""
        schedule_id = event.schedule_id
        kind = "sequence" if event.sequence is not None else "timestamp"
        order = event.ordering_key

        if order is not None:
            previous = self._last_order.get(schedule_id)
            if previous is not None and previous[0] == kind and previous[1] > order:
                logger.debug(
                    "Discarding stale seat update for schedule %s (%s %s < %s)",
                    schedule_id, kind, order, previous[1],
                )
                return False
            self._last_order[schedule_id] = (kind, order)

        self._pushed[schedule_id] = event.available_seats
        return True

    def pushed_value(self, schedule_id: int) -> Optional[int]:
        """Raw pushed count exactly as received, or None."""
        return self._pushed.get(schedule_id)

    @property
    def seat_updates(self) -> dict[int, int]:
        return dict(self._pushed)

    def effective_available_seats(self, schedule: Schedule) -> int:
        """Pushed count if any, else the snapshot; never below zero."""
        pushed = self._pushed.get(schedule.id)
        if pushed is not None:
            return max(pushed, 0)
        return max(self._polled.get(schedule.id, schedule.available_seats), 0)

    def can_book(self, schedule: Schedule) -> bool:
        return (
            schedule.status == ScheduleStatus.SCHEDULED
            and self.effective_available_seats(schedule) > 0
        )

    def forget(self, schedule_ids: Iterable[int]) -> None:
        for schedule_id in schedule_ids:
            self._polled.pop(schedule_id, None)
            self._pushed.pop(schedule_id, None)
            self._last_order.pop(schedule_id, None)
