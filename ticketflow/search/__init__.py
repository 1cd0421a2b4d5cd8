from ticketflow.search.engine import (
    ScheduleSearchEngine,
    ScheduleView,
    SearchParams,
    SearchResult,
    params_from_query,
    validate_and_build_search_params,
)
from ticketflow.search.filters import SortOrder, TimeOfDay, filter_and_sort
from ticketflow.search.route_points import RoutePointDirectory

__all__ = [
    "ScheduleSearchEngine",
    "ScheduleView",
    "SearchParams",
    "SearchResult",
    "params_from_query",
    "validate_and_build_search_params",
    "SortOrder",
    "TimeOfDay",
    "filter_and_sort",
    "RoutePointDirectory",
]
