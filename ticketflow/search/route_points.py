"""Per-district cache of pickup/drop points."""

import logging
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.config import settings
from ticketflow.errors import NetworkError
from ticketflow.schemas.schedule_schema import RoutePoint

logger = logging.getLogger(__name__)


class RoutePointDirectory:
    """Loads and remembers the route points of each district.

    A failed fetch raises ``NetworkError`` and leaves nothing cached for that
    district, so the next ``points_for`` call tries again. An empty list is
    only ever a real answer from the server.
    """

    def __init__(self, api: ApiClient, path_template: Optional[str] = None) -> None:
        self._api = api
        self._path_template = path_template or settings.api.route_points_path
        self._points: dict[int, list[RoutePoint]] = {}

    def cached(self, district_id: int) -> Optional[list[RoutePoint]]:
        return self._points.get(district_id)

    def remember(self, district_id: int, points: list[RoutePoint]) -> None:
        self._points[district_id] = list(points)

    def path_for(self, district_id: int) -> str:
        return self._path_template.format(district_id=district_id)

    async def points_for(self, district_id: int) -> list[RoutePoint]:
        cached = self._points.get(district_id)
        if cached is not None:
            return cached
        try:
            data = await self._api.get(self.path_for(district_id))
        except NetworkError as exc:
            logger.warning("Failed to fetch route points for district %s: %s", district_id, exc.message)
            raise
        try:
            points = [RoutePoint.model_validate(item) for item in data or []]
        except SchemaValidationError as exc:
            logger.warning("Malformed route points for district %s: %s", district_id, exc)
            raise NetworkError("Received malformed route point data from the server.") from exc
        self._points[district_id] = points
        return points

    async def point_ids_for(self, district_id: int) -> set[int]:
        return {point.id for point in await self.points_for(district_id)}
