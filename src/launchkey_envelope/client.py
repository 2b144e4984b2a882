"""
LaunchKey API client.

Usage:
    from launchkey_envelope import LaunchKeyClient

    with LaunchKeyClient.from_private_key(app_key, secret_key, private_key_pem) as client:
        request = client.auth("jdoe", session=True)
        response = client.poll(request.auth_request)
        if response.completed and response.authorized:
            client.log(request.auth_request, LOG_ACTION_AUTHENTICATE, True)

Error policy:
- 5xx answers and connection failures raise CommunicationError
- 4xx answers are classified from the service error body
- Nothing is retried; retrying is left to the caller
"""

from __future__ import annotations

import logging
import types
from collections.abc import Mapping
from typing import Any

from typing_extensions import Self

from launchkey_envelope._logging import get_logger
from launchkey_envelope.cache import Cache, MemoryCache, PublicKeyCache
from launchkey_envelope.callbacks import CallbackResult, CallbackRouter, RocketCreationResponder
from launchkey_envelope.classifier import error_for_response
from launchkey_envelope.codec import decode_json_object, parse_launchkey_date
from launchkey_envelope.constants import (
    AUTHS_PATH,
    DEFAULT_BASE_URL,
    DEFAULT_PUBLIC_KEY_TTL,
    DEFAULT_TIMEOUT,
    LOGS_PATH,
    NO_RESULT_YET_CODE,
    NONCE_PATH,
    PING_PATH,
    POLL_PATH,
    USERS_PATH,
)
from launchkey_envelope.crypt import CryptService, RSACryptService, load_public_key
from launchkey_envelope.envelope import SecureEnvelope
from launchkey_envelope.exceptions import (
    CommunicationError,
    InvalidRequestError,
    InvalidResponseError,
)
from launchkey_envelope.models import (
    AuthRequest,
    AuthResponse,
    NonceResponse,
    PingResponse,
    WhiteLabelUser,
)
from launchkey_envelope.transport import (
    ClientErrorResponse,
    HttpxTransport,
    Transport,
    TransportError,
)

__all__ = [
    "LaunchKeyClient",
]

_logger = get_logger(__name__)


class LaunchKeyClient:
    """
    Synchronous client for the LaunchKey v1 API.

    Features:
    - Secret key encryption and request signing on every authenticated call
    - Service public key caching with TTL
    - Poll and white-label response decryption and validation
    - Typed errors for service error codes
    - Callback handling (auth, de-orbit, rocket creation)
    """

    def __init__(
        self,
        app_key: str,
        secret_key: str,
        crypt: CryptService,
        *,
        cache: Cache | None = None,
        transport: Transport | None = None,
        base_url: str = DEFAULT_BASE_URL,
        public_key_ttl: int = DEFAULT_PUBLIC_KEY_TTL,
        timeout: float = DEFAULT_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            app_key: Application key issued by the service
            secret_key: Application secret key
            crypt: Cryptographic primitives holding the application private key
            cache: Backend for the service public key (defaults to an in-process MemoryCache)
            transport: HTTP transport (defaults to HttpxTransport on ``base_url``)
            base_url: Service base URL, used only when no transport is given
            public_key_ttl: Seconds the service public key is cached
            timeout: Request timeout, used only when no transport is given
            logger: Logger replacing the package loggers for this client
        """
        self.app_key = app_key
        self._logger = logger or _logger
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(base_url, timeout=timeout)
        self.key_cache = PublicKeyCache(
            cache if cache is not None else MemoryCache(),
            self._fetch_public_key,
            ttl=public_key_ttl,
            logger=logger,
        )
        self.envelope = SecureEnvelope(app_key, secret_key, crypt, self.key_cache)
        self.callbacks = CallbackRouter(self.envelope, crypt, self.key_cache, logger=logger)

    @classmethod
    def from_private_key(
        cls,
        app_key: str,
        secret_key: str,
        private_key: str | bytes,
        password: bytes | None = None,
        **kwargs: Any,
    ) -> Self:
        """Build a client using RSACryptService on a PEM private key, optionally passphrase protected."""
        return cls(app_key, secret_key, RSACryptService(private_key, password), **kwargs)

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
        """Release the default transport. Injected transports are left open."""
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            self._transport.close()

    # =========================================================================
    # Operations
    # =========================================================================

    def ping(self) -> PingResponse:
        """Fetch service time and the current service public key."""
        data = self._send_request("GET", PING_PATH)
        public_key = data.get("key")
        if not isinstance(public_key, str) or not public_key.strip():
            raise InvalidResponseError("Invalid ping response: missing or empty key")
        try:
            return PingResponse(
                launchkey_time=parse_launchkey_date(data["launchkey_time"]),
                public_key=public_key,
                date_stamp=parse_launchkey_date(data["date_stamp"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Invalid ping response: {e}") from e

    def auth(self, username: str, session: bool) -> AuthRequest:
        """
        Start an authorization request for a user.

        Args:
            username: LaunchKey username or white-label identifier
            session: Whether the authorization starts a session (logout expected later)
        """
        data = self._send_request(
            "POST",
            AUTHS_PATH,
            data={
                **self.envelope.credential_fields(),
                "username": username,
                "session": "1" if session else "0",
                "user_push_id": "1",
            },
        )
        try:
            return AuthRequest(username=username, session=session, auth_request=data["auth_request"])
        except KeyError as e:
            raise InvalidResponseError("No auth_request in response") from e

    def poll(self, auth_request: str) -> AuthResponse:
        """
        Poll for the user's decision on an auth request.

        Returns:
            The decision, or ``AuthResponse()`` (``completed=False``) while the user has not answered

        Raises:
            ExpiredAuthRequestError: If the request expired
            InvalidResponseError: If the decrypted answer does not match the request
        """
        try:
            data = self._send_request(
                "POST",
                POLL_PATH,
                params={"METHOD": "GET"},
                data={**self.envelope.credential_fields(), "auth_request": auth_request},
            )
        except InvalidRequestError as e:
            if e.code == NO_RESULT_YET_CODE:
                self._logger.debug("Poll pending: auth_request=%s", auth_request)
                return AuthResponse()
            raise
        return self.envelope.decrypt_poll_response(data, auth_request)

    def log(self, auth_request: str, action: str, status: bool) -> None:
        """
        Report the outcome of an auth request back to the service.

        Args:
            auth_request: Request id from ``auth``
            action: LOG_ACTION_AUTHENTICATE or LOG_ACTION_REVOKE
            status: Whether the action succeeded
        """
        self._send_request(
            "PUT",
            LOGS_PATH,
            data={
                **self.envelope.credential_fields(),
                "auth_request": auth_request,
                "action": action,
                "status": "True" if status else "False",
            },
        )

    def create_white_label_user(self, identifier: str) -> WhiteLabelUser:
        """Create a white-label user and return its enrollment QR code and code."""
        body, signature = self.envelope.signed_body({"identifier": identifier})
        data = self._send_request(
            "POST",
            USERS_PATH,
            params={"signature": signature},
            content=body,
            headers={"Content-Type": "application/json"},
        )
        return self.envelope.decrypt_white_label_user(data)

    def nonce(self) -> NonceResponse:
        """Request a single-use nonce."""
        data = self._send_request("GET", NONCE_PATH)
        try:
            return NonceResponse(nonce=data["nonce"], expiration=parse_launchkey_date(data["expire"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Invalid nonce response: {e}") from e

    def handle_callback(
        self,
        parameters: Mapping[str, Any],
        rocket_creation_responder: RocketCreationResponder | None = None,
        *,
        body: str | bytes | None = None,
    ) -> CallbackResult:
        """Process a service callback. See CallbackRouter.handle."""
        return self.callbacks.handle(parameters, rocket_creation_responder, body=body)

    # =========================================================================
    # Internals
    # =========================================================================

    def _fetch_public_key(self) -> str:
        public_key = self.ping().public_key
        # Never cache a key that cannot be loaded
        load_public_key(public_key)
        return public_key

    def _send_request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        data: Mapping[str, str] | None = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Send a request and return the parsed payload.

        Debug deployments wrap payloads in a ``response`` member; it is
        unwrapped here.
        """
        try:
            response = self._transport.send(
                method,
                path,
                params=params,
                data=data,
                content=content,
                headers=headers,
            )
        except ClientErrorResponse as e:
            self._logger.debug("Client error: method=%s path=%s status=%d", method, path, e.status_code)
            try:
                error_body = decode_json_object(e.body)
            except InvalidResponseError:
                raise InvalidRequestError(str(e), e.status_code, e) from e
            raise error_for_response(error_body, e) from e
        except TransportError as e:
            self._logger.debug("Communication error: method=%s path=%s error=%s", method, path, e)
            raise CommunicationError("Error performing request", e.status_code, e) from e

        self._logger.debug("Response received: method=%s path=%s status=%d", method, path, response.status_code)
        payload = decode_json_object(response.body)
        inner = payload.get("response")
        return inner if isinstance(inner, dict) else payload
