"""Value objects returned by the client and the callback router."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

__all__ = [
    "AuthRequest",
    "AuthResponse",
    "DeOrbitCallback",
    "NonceResponse",
    "PingResponse",
    "RocketCreated",
    "WhiteLabelUser",
]


@dataclass(frozen=True)
class PingResponse:
    """Service status, including its current RSA public key."""

    launchkey_time: datetime
    public_key: str
    date_stamp: datetime
    """When the public key was issued."""


@dataclass(frozen=True)
class NonceResponse:
    """Single-use nonce issued by the service."""

    nonce: str
    expiration: datetime


@dataclass(frozen=True)
class AuthRequest:
    """An outstanding authorization request.

    ``auth_request`` is the opaque id to pass to poll and log.
    """

    username: str
    session: bool
    auth_request: str


@dataclass(frozen=True)
class AuthResponse:
    """Outcome of a poll or an auth callback.

    The default instance (``completed=False``) means the user has not
    answered yet. It is a valid result, not an error.
    """

    completed: bool = False
    auth_request: str | None = None
    user_hash: str | None = None
    organization_user: str | None = None
    user_push_id: str | None = None
    device_id: str | None = None
    authorized: bool = False


@dataclass(frozen=True)
class WhiteLabelUser:
    """Enrollment data for a newly created white-label user."""

    qrcode: str
    code: str


@dataclass(frozen=True)
class DeOrbitCallback:
    """Server-initiated revocation of a user's session."""

    launchkey_time: datetime
    user_hash: str


@dataclass(frozen=True)
class RocketCreated:
    """Rocket creation handshake that was answered with our public key."""

    token: str
    public_key: str
