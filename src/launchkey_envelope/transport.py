"""
HTTP transport seam.

The client only needs to send a request and get bytes back, with 4xx and
5xx answers raised as distinguishable faults. Any object with a matching
``send`` method works; HttpxTransport is the default.

Usage:
    with HttpxTransport("https://api.launchkey.com") as transport:
        response = transport.send("GET", "/v1/ping")
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Protocol

import httpx
from typing_extensions import Self

from launchkey_envelope._logging import get_logger
from launchkey_envelope.constants import DEFAULT_TIMEOUT

__all__ = [
    "ClientErrorResponse",
    "HttpxTransport",
    "ServerErrorResponse",
    "Transport",
    "TransportError",
    "TransportResponse",
]

_logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Successful (non-error) HTTP answer."""

    status_code: int
    body: bytes


class TransportError(Exception):
    """Request failed before a usable answer was received.

    ``status_code`` is 0 when no HTTP status was received at all.
    """

    def __init__(self, message: str, status_code: int = 0, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ClientErrorResponse(TransportError):
    """Service answered with a 4xx status. ``body`` holds the error document."""


class ServerErrorResponse(TransportError):
    """Service answered with a 5xx status."""


class Transport(Protocol):
    """Sends one request and returns the raw answer."""

    def send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        """
        Send a request.

        Args:
            method: HTTP method
            path: Path relative to the service base URL
            params: Query string parameters
            data: Form fields, sent urlencoded
            content: Raw body, mutually exclusive with ``data``
            headers: Extra request headers

        Raises:
            ClientErrorResponse: On a 4xx answer
            ServerErrorResponse: On a 5xx answer
            TransportError: On connection failures and timeouts
        """
        ...


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if HTTPStatus.BAD_REQUEST <= status < HTTPStatus.INTERNAL_SERVER_ERROR:
        raise ClientErrorResponse(f"Client error {status} for {response.request.url}", status, response.content)
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        raise ServerErrorResponse(f"Server error {status} for {response.request.url}", status, response.content)


class HttpxTransport:
    """
    Transport on a synchronous ``httpx.Client``.

    Owns the client it creates and closes it on ``close()`` or context exit.
    A client passed in is used as is and left open.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Args:
            base_url: Service base URL (e.g., "https://api.launchkey.com")
            timeout: Seconds before a request is abandoned
            client: Preconfigured client, for custom TLS or mock transports
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse:
        _logger.debug("Sending request: method=%s path=%s", method, path)
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                data=data,
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as e:
            _logger.debug("Request failed: method=%s path=%s error=%s", method, path, e)
            raise TransportError(f"Request failed: {e}") from e

        _logger.debug("Response received: method=%s path=%s status=%d", method, path, response.status_code)
        _raise_for_status(response)
        return TransportResponse(status_code=response.status_code, body=response.content)
