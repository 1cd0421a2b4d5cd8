"""
Async HTTP client for the booking server.

Wraps ``httpx.AsyncClient`` with the server's conventions: JSON bodies,
a bearer token taken from an injected provider, and the
``{success, message, data}`` envelope most endpoints return. Every
transport or status failure surfaces as ``NetworkError`` carrying the
server's message when it sent one.
"""

import logging
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from ticketflow.config import settings
from ticketflow.errors import GENERIC_NETWORK_MESSAGE, NetworkError, user_message

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


def _no_token() -> Optional[str]:
    return None


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _unwrap(payload: Any) -> Any:
    """Strip the ``{success, message, data}`` envelope when present."""
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        return payload["data"]
    return payload


class ApiClient:
    """Thin async client shared by search, booking, payment, and the seat channel."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token_provider = token_provider or _no_token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api.base_url,
            timeout=timeout_sec or settings.api.timeout_sec,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def token(self) -> Optional[str]:
        return self._token_provider()

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self._request("POST", path, json=json)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        logger.debug("Making %s request to: %s", method, path)
        try:
            response = await self._client.request(
                method, path, headers=self._auth_headers(), **kwargs
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, path, exc)
            raise NetworkError("The request timed out. Please try again.") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(GENERIC_NETWORK_MESSAGE) from exc

        payload = _decode(response)
        if response.is_error:
            logger.warning(
                "API error on %s %s: %s %s", method, path, response.status_code, payload
            )
            raise NetworkError(
                user_message(payload, GENERIC_NETWORK_MESSAGE),
                status_code=response.status_code,
                payload=payload,
            )
        if isinstance(payload, dict) and payload.get("success") is False:
            raise NetworkError(
                user_message(payload, GENERIC_NETWORK_MESSAGE),
                status_code=response.status_code,
                payload=payload,
            )
        return _unwrap(payload)

    async def stream_lines(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        read_timeout_sec: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield text lines from a long-lived streaming response."""
        timeout = httpx.Timeout(
            settings.api.timeout_sec,
            read=read_timeout_sec or settings.seats.read_timeout_sec,
        )
        headers = {"Accept": "text/event-stream", **self._auth_headers()}
        try:
            async with self._client.stream(
                "GET", path, params=params, headers=headers, timeout=timeout
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise NetworkError(
                        user_message(_decode(response), GENERIC_NETWORK_MESSAGE),
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    yield line
        except httpx.HTTPError as exc:
            raise NetworkError(GENERIC_NETWORK_MESSAGE) from exc
