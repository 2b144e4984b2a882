"""
Request/response envelope for the LaunchKey API.

Outbound, every authenticated call carries the application's secret key
wrapped for the service:

    secret_key = base64(RSA(service_pk, {"secret": <secret>, "stamped": <utc now>}))
    signature  = sign(client_sk, RSA(...))      # over ciphertext bytes, not base64

White-label user creation signs the full JSON body instead and sends the
signature as a query parameter.

Inbound, the service encrypts results for the client's public key:
- Poll and auth callbacks: ``auth`` = base64(RSA(client_pk, JSON))
- White-label users: ``cipher`` = base64(RSA(client_pk, aes_key || iv)),
  ``data`` = base64(AES-CBC(aes_key, iv, JSON))
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from launchkey_envelope._logging import get_logger
from launchkey_envelope.cache import PublicKeyCache
from launchkey_envelope.codec import b64_encode, decode_json_object, dumps_compact, format_launchkey_date
from launchkey_envelope.constants import AES_IV_SIZE
from launchkey_envelope.crypt import CryptService
from launchkey_envelope.exceptions import InvalidRequestError, InvalidResponseError
from launchkey_envelope.models import AuthResponse, WhiteLabelUser

__all__ = [
    "SecureEnvelope",
]

_logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SecureEnvelope:
    """
    Builds outbound credential fields and opens inbound encrypted payloads.

    Holds only configuration; the public key lives in the PublicKeyCache.
    """

    def __init__(
        self,
        app_key: str,
        secret_key: str,
        crypt: CryptService,
        key_cache: PublicKeyCache,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Args:
            app_key: Application key issued by the service
            secret_key: Application secret key, never sent in clear
            crypt: Cryptographic primitives holding the application private key
            key_cache: Source of the service public key
            clock: Returns the current time for the ``stamped`` field
        """
        self.app_key = app_key
        self._secret_key = secret_key
        self._crypt = crypt
        self._key_cache = key_cache
        self._clock = clock

    # =========================================================================
    # Outbound
    # =========================================================================

    def encrypted_secret_key(self) -> bytes:
        """RSA-encrypt the stamped secret key for the service."""
        payload = dumps_compact({"secret": self._secret_key, "stamped": format_launchkey_date(self._clock())})
        return self._crypt.encrypt_rsa(payload.encode("utf-8"), self._key_cache.get_public_key())

    def credential_fields(self) -> dict[str, str]:
        """
        Fields authenticating a form-encoded request.

        Returns:
            Dict with app_key, secret_key (base64 ciphertext) and signature
        """
        encrypted = self.encrypted_secret_key()
        return {
            "app_key": self.app_key,
            "secret_key": b64_encode(encrypted),
            "signature": self._crypt.sign(encrypted),
        }

    def signed_body(self, fields: Mapping[str, Any]) -> tuple[bytes, str]:
        """
        Build a JSON body carrying credentials and sign the whole body.

        Args:
            fields: Request specific members appended after the credentials

        Returns:
            Tuple of (body bytes, base64 signature over body)
        """
        body = dumps_compact(
            {
                "app_key": self.app_key,
                "secret_key": b64_encode(self.encrypted_secret_key()),
                **fields,
            }
        ).encode("utf-8")
        return (body, self._crypt.sign(body))

    # =========================================================================
    # Inbound
    # =========================================================================

    def _open_auth_package(self, package: str) -> dict[str, Any]:
        return decode_json_object(self._crypt.decrypt_rsa(package))

    def decrypt_poll_response(self, data: Mapping[str, Any], auth_request: str) -> AuthResponse:
        """
        Decrypt and validate a completed poll response.

        Identity lives in the outer response (``user_hash``); the encrypted
        package carries the request id, device and decision.

        Args:
            data: Parsed poll response
            auth_request: Request id being polled

        Raises:
            InvalidResponseError: If the package cannot be decrypted or fails validation
        """
        try:
            auth = self._open_auth_package(data["auth"])
        except (InvalidResponseError, KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError("Unable to decrypt auth package") from e

        if "auth_request" not in auth or auth["auth_request"] != auth_request:
            raise InvalidResponseError("Auth Request value in response does not match")

        if data.get("user_hash") is None:
            raise InvalidResponseError("No user hash in response")

        # TODO: confirm with the service team that a package carrying its own user_hash is never valid
        if auth.get("response") is None or "user_hash" in auth:
            raise InvalidResponseError("Invalid auth package returned")

        _logger.debug("Poll response decrypted: auth_request=%s", auth_request)
        return AuthResponse(
            completed=True,
            auth_request=auth["auth_request"],
            user_hash=data["user_hash"],
            organization_user=data.get("organization_user"),
            user_push_id=data.get("user_push_id"),
            device_id=auth.get("device_id"),
            authorized=auth["response"] == "true",
        )

    def decrypt_auth_callback(
        self,
        auth: str,
        auth_request: str,
        user_hash: str,
        organization_user: str | None = None,
        user_push_id: str | None = None,
    ) -> AuthResponse:
        """
        Decrypt and validate the package of an auth callback.

        Raises:
            InvalidRequestError: If the package cannot be decrypted or fails validation
        """
        try:
            package = self._open_auth_package(auth)
        except (InvalidResponseError, TypeError, ValueError) as e:
            raise InvalidRequestError("Invalid auth callback auth package could not be decrypted") from e

        if package.get("auth_request") != auth_request:
            raise InvalidRequestError("Invalid auth callback auth_request values did not match")
        if package.get("device_id") is None or package.get("response") is None:
            raise InvalidRequestError("Invalid auth callback auth package was invalid")

        _logger.debug("Auth callback decrypted: auth_request=%s", auth_request)
        return AuthResponse(
            completed=True,
            auth_request=auth_request,
            user_hash=user_hash,
            organization_user=organization_user,
            user_push_id=user_push_id,
            device_id=package["device_id"],
            authorized=package["response"] == "true",
        )

    def decrypt_white_label_user(self, data: Mapping[str, Any]) -> WhiteLabelUser:
        """
        Open the doubly wrapped white-label user payload.

        Raises:
            InvalidResponseError: If either layer fails or the plaintext is not the expected JSON
        """
        try:
            cipher = self._crypt.decrypt_rsa(data["cipher"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError("Unable to decrypt white label user cipher") from e
        if len(cipher) <= AES_IV_SIZE:
            raise InvalidResponseError(f"White label user cipher too short: {len(cipher)} bytes")

        key, iv = cipher[:-AES_IV_SIZE], cipher[-AES_IV_SIZE:]
        try:
            plaintext = self._crypt.decrypt_aes(data["data"], key, iv)
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError("Unable to decrypt white label user data") from e

        try:
            user_data = decode_json_object(plaintext)
        except InvalidResponseError as e:
            raise InvalidResponseError("Response data is not valid JSON when decrypted", e.code) from e

        if "qrcode" not in user_data or "code" not in user_data:
            raise InvalidResponseError("White label user data is missing qrcode or code")
        return WhiteLabelUser(qrcode=user_data["qrcode"], code=user_data["code"])
