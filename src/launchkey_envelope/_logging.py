"""Package logger helpers."""

import logging

_ROOT = "launchkey_envelope"

logging.getLogger(_ROOT).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace.

    Output is silent until the application configures a handler for
    ``launchkey_envelope``.
    """
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)
