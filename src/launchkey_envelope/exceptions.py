"""
Exception hierarchy for launchkey_envelope.

All service errors inherit from LaunchKeyError for easy catching. Every class
is tied to one ErrorKind so callers can branch on ``error.kind`` instead of
the class when that reads better.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

__all__ = [
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
    "error_class_for",
]


class ErrorKind(str, Enum):
    """Kinds of failure surfaced by the client."""

    COMMUNICATION = "communication"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"
    EXPIRED_REQUEST = "expired_request"
    NO_PAIRED_DEVICES = "no_paired_devices"
    NO_SUCH_USER = "no_such_user"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    ENGINE_ERROR = "engine_error"
    UNKNOWN_CALLBACK_ACTION = "unknown_callback_action"


class LaunchKeyError(Exception):
    """Base exception for all client errors.

    Attributes:
        message: Human readable description
        code: Originating service or HTTP status code, 0 when there is none
    """

    kind: ClassVar[ErrorKind]

    def __init__(self, message: str, code: int = 0, cause: BaseException | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        """Underlying exception, if any."""
        return self.__cause__


class CommunicationError(LaunchKeyError):
    """The service could not be reached or answered with a server error."""

    kind = ErrorKind.COMMUNICATION


class InvalidCredentialsError(LaunchKeyError):
    """App key, secret key or request signature was rejected."""

    kind = ErrorKind.INVALID_CREDENTIALS


class InvalidRequestError(LaunchKeyError):
    """The service rejected the request, or an inbound callback was invalid."""

    kind = ErrorKind.INVALID_REQUEST


class InvalidResponseError(LaunchKeyError):
    """A service response could not be decrypted, parsed or validated."""

    kind = ErrorKind.INVALID_RESPONSE


class ExpiredAuthRequestError(LaunchKeyError):
    """The referenced auth request has expired server side."""

    kind = ErrorKind.EXPIRED_REQUEST


class NoPairedDevicesError(LaunchKeyError):
    """The user has no paired devices to authorize with."""

    kind = ErrorKind.NO_PAIRED_DEVICES


class NoSuchUserError(LaunchKeyError):
    """The username is unknown to the service."""

    kind = ErrorKind.NO_SUCH_USER


class RateLimitExceededError(LaunchKeyError):
    """Too many requests for this user or application."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED


class LaunchKeyEngineError(LaunchKeyError):
    """The service reported an internal engine failure."""

    kind = ErrorKind.ENGINE_ERROR


class UnknownCallbackActionError(LaunchKeyError):
    """Callback parameters matched none of the known callback shapes."""

    kind = ErrorKind.UNKNOWN_CALLBACK_ACTION


_ERROR_CLASSES: dict[ErrorKind, type[LaunchKeyError]] = {
    cls.kind: cls
    for cls in (
        CommunicationError,
        InvalidCredentialsError,
        InvalidRequestError,
        InvalidResponseError,
        ExpiredAuthRequestError,
        NoPairedDevicesError,
        NoSuchUserError,
        RateLimitExceededError,
        LaunchKeyEngineError,
        UnknownCallbackActionError,
    )
}


def error_class_for(kind: ErrorKind) -> type[LaunchKeyError]:
    """Return the exception class raised for an error kind."""
    return _ERROR_CLASSES[kind]
