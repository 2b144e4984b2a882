"""
Client-side security envelope for the LaunchKey authentication API.

Requests are authenticated with the application secret key RSA-encrypted for
the service and signed with the application private key. Responses and
callbacks encrypted for the application are decrypted and validated before
they are returned.

Usage (Client):
    from launchkey_envelope import LaunchKeyClient

    with LaunchKeyClient.from_private_key(app_key, secret_key, private_key_pem) as client:
        request = client.auth("jdoe", session=False)
        response = client.poll(request.auth_request)

Usage (Callbacks - FastAPI):
    from launchkey_envelope.middleware.fastapi import callback_router

    app = FastAPI()
    app.include_router(callback_router(client, on_result=handle_result))
"""

from launchkey_envelope.cache import Cache, MemoryCache, PublicKeyCache
from launchkey_envelope.callbacks import CallbackRouter, CallbackShape
from launchkey_envelope.classifier import ERROR_CODE_KINDS, classify
from launchkey_envelope.client import LaunchKeyClient
from launchkey_envelope.constants import LOG_ACTION_AUTHENTICATE, LOG_ACTION_REVOKE
from launchkey_envelope.crypt import CryptService, RSACryptService
from launchkey_envelope.envelope import SecureEnvelope
from launchkey_envelope.exceptions import (
    CommunicationError,
    ErrorKind,
    ExpiredAuthRequestError,
    InvalidCredentialsError,
    InvalidRequestError,
    InvalidResponseError,
    LaunchKeyEngineError,
    LaunchKeyError,
    NoPairedDevicesError,
    NoSuchUserError,
    RateLimitExceededError,
    UnknownCallbackActionError,
)
from launchkey_envelope.models import (
    AuthRequest,
    AuthResponse,
    DeOrbitCallback,
    NonceResponse,
    PingResponse,
    RocketCreated,
    WhiteLabelUser,
)

__all__ = [
    # Constants
    "ERROR_CODE_KINDS",
    "LOG_ACTION_AUTHENTICATE",
    "LOG_ACTION_REVOKE",
    # Client
    "Cache",
    "CallbackRouter",
    "CallbackShape",
    "CryptService",
    "LaunchKeyClient",
    "MemoryCache",
    "PublicKeyCache",
    "RSACryptService",
    "SecureEnvelope",
    "classify",
    # Models
    "AuthRequest",
    "AuthResponse",
    "DeOrbitCallback",
    "NonceResponse",
    "PingResponse",
    "RocketCreated",
    "WhiteLabelUser",
    # Exceptions
    "CommunicationError",
    "ErrorKind",
    "ExpiredAuthRequestError",
    "InvalidCredentialsError",
    "InvalidRequestError",
    "InvalidResponseError",
    "LaunchKeyEngineError",
    "LaunchKeyError",
    "NoPairedDevicesError",
    "NoSuchUserError",
    "RateLimitExceededError",
    "UnknownCallbackActionError",
]

__version__ = "0.1.0"
