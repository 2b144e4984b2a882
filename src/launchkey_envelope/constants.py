"""
Constants for the LaunchKey client envelope.

Wire paths, cache keys, date formats and the service error codes the client
treats specially.
"""

import re
from typing import Final

# =============================================================================
# Service endpoints
# =============================================================================

DEFAULT_BASE_URL: Final[str] = "https://api.launchkey.com"
"""Production API host."""

PING_PATH: Final[str] = "/v1/ping"
AUTHS_PATH: Final[str] = "/v1/auths"
POLL_PATH: Final[str] = "/v1/poll"
LOGS_PATH: Final[str] = "/v1/logs"
USERS_PATH: Final[str] = "/v1/users"
NONCE_PATH: Final[str] = "/v1/nonce"

CALLBACK_PATH: Final[str] = "/launchkey/callback"
"""Default route for the FastAPI callback router."""

DEFAULT_TIMEOUT: Final[float] = 10.0
"""Seconds before the default transport gives up on a request."""

# =============================================================================
# Public key cache
# =============================================================================

CACHE_KEY_PUBLIC_KEY: Final[str] = "launchkey-public-key-cache"

DEFAULT_PUBLIC_KEY_TTL: Final[int] = 3600
"""Seconds a fetched service public key stays in the cache."""

# =============================================================================
# Dates
# =============================================================================

LAUNCHKEY_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
"""All service timestamps are naive strings in this format, always UTC."""

# =============================================================================
# Envelope layout
# =============================================================================

AES_IV_SIZE: Final[int] = 16
"""Trailing bytes of the RSA-wrapped white-label cipher that form the AES IV."""

# =============================================================================
# Errors
# =============================================================================

NO_RESULT_YET_CODE: Final[int] = 70403
"""Poll error code meaning the user has not answered yet."""

UNKNOWN_API_ERROR_MESSAGE: Final[str] = "An unknown API Error Occurred"

# =============================================================================
# Auth log actions
# =============================================================================

LOG_ACTION_AUTHENTICATE: Final[str] = "Authenticate"
LOG_ACTION_REVOKE: Final[str] = "Revoke"

# =============================================================================
# Callbacks
# =============================================================================

ROCKET_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9]+=*\.[a-zA-Z0-9]+=*\.[a-zA-Z0-9]+=*$")
"""Three dot-separated base64-like segments sent by the service during rocket creation."""
