"""
Push channel keeping seat counts fresh for the schedules on screen.

One long-lived Server-Sent Events stream per authenticated session,
opened with the session token. ``SEAT_UPDATE`` frames are merged into the
shared ``SeatBoard``; anything else on the stream (connection notices,
heartbeats) is ignored.

The server cannot filter by schedule, so ``subscribe``/``unsubscribe``
only maintain the local interest set and the merge step drops events for
schedules outside it.

Usage:
    channel = SeatAvailabilityChannel(api, board)
    channel.subscribe(42)
    await channel.connect()
    ...
    await channel.disconnect()
"""

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError as SchemaValidationError

from ticketflow.api.client import ApiClient
from ticketflow.config import settings
from ticketflow.errors import NetworkError
from ticketflow.schemas.schedule_schema import SEAT_UPDATE_EVENT, SeatUpdateEvent
from ticketflow.seats.board import SeatBoard

logger = logging.getLogger(__name__)

SeatListener = Callable[[SeatUpdateEvent], None]


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class SeatAvailabilityChannel:
    """Explicitly constructed push channel; owned by the composition root."""

    def __init__(
        self,
        api: ApiClient,
        board: SeatBoard,
        stream_path: Optional[str] = None,
        read_timeout_sec: Optional[float] = None,
    ) -> None:
        self._api = api
        self._board = board
        self._stream_path = stream_path or settings.seats.stream_path
        self._read_timeout_sec = read_timeout_sec or settings.seats.read_timeout_sec
        self._state = ChannelState.DISCONNECTED
        self._task: Optional[asyncio.Task] = None
        self._subscriptions: set[int] = set()
        self._listeners: list[SeatListener] = []

    async def __aenter__(self) -> "SeatAvailabilityChannel":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ChannelState.CONNECTED

    @property
    def board(self) -> SeatBoard:
        return self._board

    @property
    def subscriptions(self) -> frozenset[int]:
        return frozenset(self._subscriptions)

    def _set_state(self, state: ChannelState) -> None:
        if state != self._state:
            logger.debug("Seat channel: %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> bool:
        """Open the stream. No-op while connecting or connected.

        Returns False without opening anything when no session token is
        available.
        """
        if self._state in (ChannelState.CONNECTING, ChannelState.CONNECTED):
            return True
        token = self._api.token()
        if not token:
            logger.info("Seat channel not opened: no authenticated session")
            self._set_state(ChannelState.DISCONNECTED)
            return False

        self._set_state(ChannelState.CONNECTING)
        self._task = asyncio.create_task(self._run(token))
        return True

    async def disconnect(self) -> None:
        """Release the transport. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_state(ChannelState.DISCONNECTED)

    async def set_authenticated(self, authenticated: bool) -> None:
        """Follow the session: connect on login, tear down on logout."""
        if authenticated:
            await self.connect()
        else:
            await self.disconnect()

    async def wait_closed(self) -> None:
        """Wait for the reader to finish (stream closed by the server or an error)."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self, token: str) -> None:
        data_lines: list[str] = []
        try:
            async for line in self._api.stream_lines(
                self._stream_path,
                params={"token": token},
                read_timeout_sec=self._read_timeout_sec,
            ):
                if self._state == ChannelState.CONNECTING:
                    self._set_state(ChannelState.CONNECTED)
                    logger.info("Seat update stream established")

                if not line:
                    if data_lines:
                        self.handle_frame("\n".join(data_lines))
                        data_lines = []
                    continue
                if line.startswith(":"):
                    continue
                field, _, value = line.partition(":")
                if field == "data":
                    data_lines.append(value[1:] if value.startswith(" ") else value)

            if data_lines:
                self.handle_frame("\n".join(data_lines))
            logger.info("Seat update stream closed by server")
        except NetworkError as exc:
            logger.warning("Seat update stream error: %s", exc.message)
            self._set_state(ChannelState.ERROR)
        finally:
            self._set_state(ChannelState.DISCONNECTED)

    # ------------------------------------------------------------------ #
    # Interest set
    # ------------------------------------------------------------------ #

    def subscribe(self, schedule_id: int) -> None:
        self._subscriptions.add(schedule_id)
        logger.debug("Subscribed to schedule %s", schedule_id)

    def unsubscribe(self, schedule_id: int) -> None:
        self._subscriptions.discard(schedule_id)
        logger.debug("Unsubscribed from schedule %s", schedule_id)

    def add_listener(self, listener: SeatListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------ #
    # Frame handling
    # ------------------------------------------------------------------ #

    def handle_frame(self, raw: str) -> Optional[SeatUpdateEvent]:
        """Parse one inbound frame and merge it. Malformed frames are dropped."""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Dropping malformed seat frame: %r", raw[:200])
            return None

        if not isinstance(data, dict) or data.get("type") != SEAT_UPDATE_EVENT:
            return None

        try:
            event = SeatUpdateEvent.model_validate(data)
        except SchemaValidationError as exc:
            logger.warning("Dropping invalid seat update %r: %s", data, exc.errors())
            return None

        if event.schedule_id not in self._subscriptions:
            logger.debug("Ignoring seat update for unwatched schedule %s", event.schedule_id)
            return None

        if not self._board.apply_push(event):
            return None

        logger.debug(
            "Seat update: schedule %s -> %s seats",
            event.schedule_id, event.available_seats,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.warning("Seat listener failed for schedule %s: %s", event.schedule_id, exc)
        return event
