"""Shared test fixtures and helpers."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from ticketflow.api.client import ApiClient
from ticketflow.recovery.store import RecoveryStore
from ticketflow.schemas.booking_schema import Booking
from ticketflow.schemas.schedule_schema import Schedule
from ticketflow.search.route_points import RoutePointDirectory
from ticketflow.seats.board import SeatBoard

BASE_URL = "http://booking.test/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeServer:
    """In-process booking server served through ``httpx.MockTransport``.

    Routes are keyed by method and path relative to the API root; unknown
    routes answer 404. Every request is recorded for assertions.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def on(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        handler: Optional[Handler] = None,
    ) -> None:
        self.routes[(method, path)] = handler or (
            lambda request: httpx.Response(status, json=json)
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/api/", 1)[-1]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        return route(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.split("/api/", 1)[-1] == path
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def body(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def api(server):
    return ApiClient(base_url=BASE_URL, token_provider=lambda: "session-token", transport=server.transport)


@pytest.fixture
def anonymous_api(server):
    return ApiClient(base_url=BASE_URL, transport=server.transport)


@pytest.fixture
def board():
    return SeatBoard()


@pytest.fixture
def route_points(api):
    return RoutePointDirectory(api)


@pytest.fixture
def recovery_store(tmp_path):
    return RecoveryStore(tmp_path / "recovery.json")


def serve_route_points(server: FakeServer) -> None:
    """Kigali (1) has points 11 and 12; Huye (2) has point 21."""
    server.on("GET", "admin/districts/1/points", json=[
        {"id": 11, "name": "Nyabugogo", "district": {"id": 1, "name": "Kigali"}},
        {"id": 12, "name": "Remera", "district": {"id": 1, "name": "Kigali"}},
    ])
    server.on("GET", "admin/districts/2/points", json=[
        {"id": 21, "name": "Huye Bus Park", "district": {"id": 2, "name": "Huye"}},
    ])


def schedule_payload(
    schedule_id: int = 1,
    price: float = 3500.0,
    departure_time: str = "08:00:00",
    available_seats: int = 10,
    status: str = "SCHEDULED",
    departure_date: str = "2024-06-01",
    origin: tuple[int, str] = (1, "Kigali"),
    destination: tuple[int, str] = (2, "Huye"),
) -> dict:
    """Wire-format schedule as the server sends it."""
    return {
        "id": schedule_id,
        "agencyRoute": {
            "id": 100 + schedule_id,
            "price": price,
            "agency": {"id": 5, "agencyName": "Volcano Express"},
            "route": {
                "id": 9,
                "origin": {"id": origin[0], "name": origin[1]},
                "destination": {"id": destination[0], "name": destination[1]},
            },
        },
        "bus": {"id": 3, "plateNumber": "RAD 123 A", "capacity": 30},
        "departureDate": departure_date,
        "departureTime": departure_time,
        "arrivalTime": "11:00:00",
        "availableSeats": available_seats,
        "status": status,
    }


def make_schedule(**kwargs) -> Schedule:
    """Helper to create a Schedule with sensible defaults."""
    return Schedule.model_validate(schedule_payload(**kwargs))


def booking_payload(
    booking_id: int = 7,
    reference: str = "BK-2024-0007",
    number_of_seats: int = 2,
    price: float = 3500.0,
    total_amount: Optional[float] = None,
    email: Optional[str] = "jane@example.com",
    phone_number: Optional[str] = "0788123456",
    status: str = "PENDING",
) -> dict:
    payload = {
        "id": booking_id,
        "bookingReference": reference,
        "customer": {
            "id": 33,
            "firstName": "Jane",
            "lastName": "Uwase",
            "email": email,
            "phoneNumber": phone_number,
        },
        "schedule": schedule_payload(price=price),
        "pickupPoint": {"id": 11, "name": "Nyabugogo", "district": {"id": 1, "name": "Kigali"}},
        "dropPoint": {"id": 21, "name": "Huye Bus Park", "district": {"id": 2, "name": "Huye"}},
        "numberOfSeats": number_of_seats,
        "status": status,
    }
    if total_amount is not None:
        payload["totalAmount"] = total_amount
    return payload


def make_booking(**kwargs) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    return Booking.model_validate(booking_payload(**kwargs))
