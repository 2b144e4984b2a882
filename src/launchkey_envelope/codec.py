"""
Encoding helpers shared by the envelope, the client and the callback router.

Standard base64 (RFC 4648 §4) is used for every binary field on the wire.
JSON is always written compact (no whitespace) because signatures are
computed over the exact bytes sent.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any

from launchkey_envelope.constants import LAUNCHKEY_DATE_FORMAT
from launchkey_envelope.exceptions import InvalidResponseError

__all__ = [
    "b64_decode",
    "b64_encode",
    "decode_json_object",
    "dumps_compact",
    "format_launchkey_date",
    "parse_launchkey_date",
]


def b64_encode(data: bytes) -> str:
    """Encode bytes to a padded base64 string."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(data: str | bytes) -> bytes:
    """
    Decode a base64 string, tolerating surrounding whitespace.

    Raises:
        ValueError: If the input is not valid base64
    """
    if isinstance(data, str):
        data = data.strip().encode("ascii")
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 data: {e}") from e


def dumps_compact(value: Any) -> str:
    """Serialize to JSON without insignificant whitespace."""
    return json.dumps(value, separators=(",", ":"))


def decode_json_object(raw: str | bytes) -> dict[str, Any]:
    """
    Parse a JSON document that must be a non-empty object.

    Args:
        raw: JSON text or UTF-8 bytes

    Returns:
        Parsed object

    Raises:
        InvalidResponseError: If the text is not JSON or is not a non-empty object
    """
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidResponseError(f"Unable to parse body as JSON: {e}") from e
    if not isinstance(data, dict) or not data:
        raise InvalidResponseError("Unable to parse body as JSON: expected a non-empty object")
    return data


def parse_launchkey_date(value: str) -> datetime:
    """
    Parse a service timestamp into an aware UTC datetime.

    Raises:
        ValueError: If the value does not match the service date format
    """
    return datetime.strptime(value, LAUNCHKEY_DATE_FORMAT).replace(tzinfo=timezone.utc)


def format_launchkey_date(value: datetime) -> str:
    """Format a datetime as a service timestamp, converting aware values to UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(LAUNCHKEY_DATE_FORMAT)
