"""
Routing of asynchronous service callbacks.

The service calls back the application's callback URL in three situations,
distinguished only by which fields are present:

- Auth completion: ``auth``, ``auth_request`` and ``user_hash``
- De-orbit (remote logout): ``deorbit`` and ``signature``
- Rocket creation handshake: the request body is a dotted token and the
  service expects the application's public key as a plain text answer

Shapes are checked in that order, so an auth callback carrying stray
de-orbit fields is still an auth callback.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from launchkey_envelope._logging import get_logger
from launchkey_envelope.cache import PublicKeyCache
from launchkey_envelope.codec import parse_launchkey_date
from launchkey_envelope.constants import ROCKET_TOKEN_PATTERN
from launchkey_envelope.crypt import CryptService
from launchkey_envelope.envelope import SecureEnvelope
from launchkey_envelope.exceptions import InvalidRequestError, UnknownCallbackActionError
from launchkey_envelope.models import AuthResponse, DeOrbitCallback, RocketCreated

__all__ = [
    "CallbackResult",
    "CallbackRouter",
    "CallbackShape",
    "RocketCreationResponder",
    "classify_callback",
    "normalize_parameters",
]

_logger = get_logger(__name__)

CallbackResult = AuthResponse | DeOrbitCallback | RocketCreated

RocketCreationResponder = Callable[[str], Any]
"""
Called with the public key during a rocket creation handshake.

Expected to answer the pending HTTP request with a 200 ``text/plain`` body
containing the key. Its return value is ignored by the router.
"""


class CallbackShape(str, Enum):
    """Kinds of inbound callback."""

    AUTH = "auth"
    DEORBIT = "deorbit"
    ROCKET_CREATION = "rocket_creation"
    UNKNOWN = "unknown"


_AUTH_FIELDS = ("auth", "auth_request", "user_hash")
_DEORBIT_FIELDS = ("deorbit", "signature")


def normalize_parameters(parameters: Mapping[str, Any]) -> dict[str, str]:
    """
    Flatten a parameter mapping into a plain string bag.

    Accepts plain dicts, ``urllib.parse.parse_qs`` output and multi-dicts:
    None values are dropped and single-item lists are unwrapped. Multi-item
    lists keep their first value.
    """
    bag: dict[str, str] = {}
    for key, value in parameters.items():
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        if value is None:
            continue
        bag[str(key)] = value if isinstance(value, str) else str(value)
    return bag


def classify_callback(bag: Mapping[str, str], body: str | None = None) -> CallbackShape:
    """Decide which callback shape a normalized parameter bag represents."""
    if all(field in bag for field in _AUTH_FIELDS):
        return CallbackShape.AUTH
    if all(field in bag for field in _DEORBIT_FIELDS):
        return CallbackShape.DEORBIT
    if body and ROCKET_TOKEN_PATTERN.match(body.strip()):
        return CallbackShape.ROCKET_CREATION
    return CallbackShape.UNKNOWN


class CallbackRouter:
    """
    Classifies inbound callbacks and runs the matching handler.

    Stateless apart from its collaborators; safe to share between requests.
    """

    def __init__(
        self,
        envelope: SecureEnvelope,
        crypt: CryptService,
        key_cache: PublicKeyCache,
        logger: logging.Logger | None = None,
    ) -> None:
        self._envelope = envelope
        self._crypt = crypt
        self._key_cache = key_cache
        self._logger = logger or _logger

    def handle(
        self,
        parameters: Mapping[str, Any],
        rocket_creation_responder: RocketCreationResponder | None = None,
        *,
        body: str | bytes | None = None,
    ) -> CallbackResult:
        """
        Process one callback.

        Args:
            parameters: Query string and form fields of the callback request
            rocket_creation_responder: Answers a rocket creation handshake with the public key
            body: Raw request body, inspected for the rocket creation token

        Returns:
            AuthResponse, DeOrbitCallback or RocketCreated depending on the shape

        Raises:
            TypeError: If ``rocket_creation_responder`` is given but not callable
            InvalidRequestError: If the callback fails decryption or validation
            UnknownCallbackActionError: If no shape matches
        """
        if rocket_creation_responder is not None and not callable(rocket_creation_responder):
            raise TypeError("rocket_creation_responder is not callable")

        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        bag = normalize_parameters(parameters)
        shape = classify_callback(bag, body)
        self._logger.debug("Callback classified: shape=%s fields=%s", shape.value, sorted(bag))

        if shape is CallbackShape.AUTH:
            return self._envelope.decrypt_auth_callback(
                bag["auth"],
                bag["auth_request"],
                bag["user_hash"],
                organization_user=bag.get("organization_user"),
                user_push_id=bag.get("user_push_id"),
            )
        if shape is CallbackShape.DEORBIT:
            return self._handle_deorbit(bag["deorbit"], bag["signature"])
        if shape is CallbackShape.ROCKET_CREATION and body is not None:
            return self._handle_rocket_creation(body.strip(), rocket_creation_responder)
        raise UnknownCallbackActionError("Could not determine auth callback action")

    def _handle_deorbit(self, deorbit: str, signature: str) -> DeOrbitCallback:
        """Verify the service signature, then read the revocation package."""
        if not self._crypt.verify_signature(signature, deorbit.encode("utf-8"), self._key_cache.get_public_key()):
            raise InvalidRequestError("Invalid signature for de-orbit callback")

        try:
            data = json.loads(deorbit)
            launchkey_time = parse_launchkey_date(data["launchkey_time"])
            user_hash = data["user_hash"]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRequestError("Invalid package for de-orbit callback") from e
        if user_hash is None:
            raise InvalidRequestError("Invalid package for de-orbit callback")

        self._logger.debug("De-orbit callback verified")
        return DeOrbitCallback(launchkey_time=launchkey_time, user_hash=user_hash)

    def _handle_rocket_creation(
        self,
        token: str,
        responder: RocketCreationResponder | None,
    ) -> RocketCreated:
        public_key = self._key_cache.get_public_key()
        if responder is not None:
            responder(public_key)
        self._logger.debug("Rocket creation handshake answered: responder=%s", responder is not None)
        return RocketCreated(token=token, public_key=public_key)
