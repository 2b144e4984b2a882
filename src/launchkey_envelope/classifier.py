"""
Service error classification.

Error bodies look like ``{"message": ..., "message_code": 40424}``. The code
alone decides the error kind through ERROR_CODE_KINDS; codes missing from
the table are generic invalid requests.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from launchkey_envelope.codec import dumps_compact
from launchkey_envelope.constants import UNKNOWN_API_ERROR_MESSAGE
from launchkey_envelope.exceptions import ErrorKind, LaunchKeyError, error_class_for

__all__ = [
    "ERROR_CODE_KINDS",
    "classify",
    "error_for_response",
    "error_message",
]


def _codes(kind: ErrorKind, *codes: int) -> dict[str, ErrorKind]:
    return {str(code): kind for code in codes}


ERROR_CODE_KINDS: Mapping[str, ErrorKind] = MappingProxyType(
    {
        **_codes(
            ErrorKind.INVALID_CREDENTIALS,
            40422,
            40423,
            40425,
            40428,
            40429,
            *range(40432, 40436),
            40437,
            *range(50442, 50446),
            *range(50447, 50450),
            *range(50452, 50455),
            50457,
        ),
        **_codes(ErrorKind.NO_PAIRED_DEVICES, 40424),
        **_codes(ErrorKind.NO_SUCH_USER, 40426),
        **_codes(ErrorKind.EXPIRED_REQUEST, 40431, 50451, 70404),
        **_codes(ErrorKind.RATE_LIMIT_EXCEEDED, 40436),
        **_codes(ErrorKind.ENGINE_ERROR, 50455),
    }
)
"""Service message codes mapped to error kinds. Everything else is INVALID_REQUEST."""


def classify(code: str | int | None) -> ErrorKind:
    """Return the error kind for a service message code."""
    if code is None:
        return ErrorKind.INVALID_REQUEST
    return ERROR_CODE_KINDS.get(str(code).strip(), ErrorKind.INVALID_REQUEST)


def error_message(payload: Mapping[str, Any]) -> str:
    """Extract a printable message from an error body.

    Structured messages (field errors come back as objects) are re-serialized
    to JSON text.
    """
    message = payload.get("message")
    if message is None:
        return UNKNOWN_API_ERROR_MESSAGE
    if isinstance(message, str):
        return message
    return dumps_compact(message)


def _numeric_code(code: Any) -> int:
    try:
        return int(code)
    except (TypeError, ValueError):
        return 0


def error_for_response(payload: Mapping[str, Any], cause: BaseException | None = None) -> LaunchKeyError:
    """
    Build the typed error for a service error body.

    Args:
        payload: Parsed error body
        cause: Transport fault that carried the body

    Returns:
        Exception instance ready to raise
    """
    code = payload.get("message_code")
    error_cls = error_class_for(classify(code))
    return error_cls(error_message(payload), _numeric_code(code), cause)
