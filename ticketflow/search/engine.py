"""
Schedule search with live seat overlay.

Both entry points, explicit submission (``search``) and deep-link
parameters (``search_from_query``), go through the single
``validate_and_build_search_params`` function and the same fetch, so
they cannot drift apart.

Usage:
    engine = ScheduleSearchEngine(api, board)
    result = await engine.search(1, 2, "2024-06-01")
    if result.no_matches:
        ...
    cheapest_mornings = filter_and_sort(result.schedules, "morning", "price")
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.config import settings
from ticketflow.errors import NetworkError, ValidationError
from ticketflow.logging_context import get_flow_logger
from ticketflow.schemas.schedule_schema import Schedule
from ticketflow.search.filters import SortOrder, TimeOfDay, filter_and_sort
from ticketflow.search.route_points import RoutePointDirectory
from ticketflow.seats.board import SeatBoard
from ticketflow.utils import is_blank

logger = get_flow_logger(__name__)

SEARCH_PATH = "schedules/search"

DistrictId = Union[int, str]
DateLike = Union[date, str]


@dataclass(frozen=True)
class SearchParams:
    origin_id: int
    destination_id: int
    departure_date: date

    def to_query(self) -> dict[str, str]:
        return {
            "originId": str(self.origin_id),
            "destinationId": str(self.destination_id),
            "departureDate": self.departure_date.isoformat(),
        }


def _parse_district(value: DistrictId, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid district: {value!r}", field=field_name) from None


def _parse_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(
            f"Invalid departure date: {value!r} (expected YYYY-MM-DD)",
            field="departure_date",
        ) from None


def validate_and_build_search_params(
    origin_id: Optional[DistrictId],
    destination_id: Optional[DistrictId],
    departure_date: Optional[DateLike],
) -> SearchParams:
    """Validate raw search input. Raises ValidationError; never touches the network."""
    if is_blank(origin_id) or is_blank(destination_id) or is_blank(departure_date):
        raise ValidationError("Please fill in all search fields")

    origin = _parse_district(origin_id, "origin_id")
    destination = _parse_district(destination_id, "destination_id")
    if origin == destination:
        raise ValidationError(
            "Origin and destination cannot be the same", field="destination_id"
        )
    return SearchParams(origin, destination, _parse_date(departure_date))


def params_from_query(query: Mapping[str, str]) -> SearchParams:
    """Build search params from deep-link query parameters."""
    return validate_and_build_search_params(
        query.get("originId"),
        query.get("destinationId"),
        query.get("departureDate"),
    )


@dataclass(frozen=True)
class ScheduleView:
    """A schedule paired with its live seat figures."""

    schedule: Schedule
    available_seats: int
    bookable: bool
    max_selectable_seats: int


@dataclass
class SearchResult:
    params: SearchParams
    schedules: list[Schedule] = field(default_factory=list)

    @property
    def no_matches(self) -> bool:
        return not self.schedules

    def refine(
        self,
        time_of_day: Optional[Union[TimeOfDay, str]] = None,
        sort: Optional[Union[SortOrder, str]] = None,
    ) -> list[Schedule]:
        return filter_and_sort(self.schedules, time_of_day, sort)


class ScheduleSearchEngine:
    """Fetches schedules and keeps the seat board's polled snapshot current."""

    def __init__(
        self,
        api: ApiClient,
        board: Optional[SeatBoard] = None,
        route_points: Optional[RoutePointDirectory] = None,
        max_seats_per_booking: Optional[int] = None,
    ) -> None:
        self._api = api
        self._board = board or SeatBoard()
        self._route_points = route_points or RoutePointDirectory(api)
        self._max_seats = max_seats_per_booking or settings.booking.max_seats_per_booking
        self._last_result: Optional[SearchResult] = None

    @property
    def board(self) -> SeatBoard:
        return self._board

    @property
    def route_points(self) -> RoutePointDirectory:
        return self._route_points

    @property
    def last_result(self) -> Optional[SearchResult]:
        return self._last_result

    async def search(
        self,
        origin_id: Optional[DistrictId],
        destination_id: Optional[DistrictId],
        departure_date: Optional[DateLike],
    ) -> SearchResult:
        params = validate_and_build_search_params(origin_id, destination_id, departure_date)
        return await self.run(params)

    async def search_from_query(self, query: Mapping[str, str]) -> SearchResult:
        return await self.run(params_from_query(query))

    async def run(self, params: SearchParams) -> SearchResult:
        """Fetch schedules for validated params.

        On failure the previous result stays in place and NetworkError
        propagates; an empty list is a normal result with ``no_matches``.
        """
        logger.info(
            "Searching schedules %s -> %s on %s",
            params.origin_id, params.destination_id, params.departure_date,
        )
        data = await self._api.get(SEARCH_PATH, params=params.to_query())
        try:
            schedules = [Schedule.model_validate(item) for item in data or []]
        except SchemaValidationError as exc:
            logger.warning("Malformed schedule in search response: %s", exc)
            raise NetworkError("Received malformed schedule data from the server.") from exc

        self._board.record_snapshot(schedules)
        result = SearchResult(params=params, schedules=schedules)
        self._last_result = result

        if result.no_matches:
            logger.info("No schedules found for %s", params)
        else:
            await self._warm_route_points(params.origin_id, params.destination_id)
            logger.info("Found %d schedules", len(schedules))
        return result

    async def _warm_route_points(self, *district_ids: int) -> None:
        """Prefetch pickup/drop points; a failure here never fails the search."""
        for district_id in district_ids:
            try:
                await self._route_points.points_for(district_id)
            except NetworkError as exc:
                logger.warning("Route points for district %s not prefetched: %s", district_id, exc.message)

    def max_selectable_seats(self, schedule: Schedule) -> int:
        """UI seat cap: min(live available seats, per-booking limit)."""
        return min(self._board.effective_available_seats(schedule), self._max_seats)

    def overlay(self, schedules: list[Schedule]) -> list[ScheduleView]:
        return [
            ScheduleView(
                schedule=s,
                available_seats=self._board.effective_available_seats(s),
                bookable=self._board.can_book(s),
                max_selectable_seats=self.max_selectable_seats(s),
            )
            for s in schedules
        ]
