"""
FastAPI/Starlette endpoint for LaunchKey service callbacks.

Provides:
- One route accepting GET and POST callbacks
- Rocket creation handshakes answered with a ``text/plain`` public key
- Auth and de-orbit results handed to an application hook

Usage:
    from fastapi import FastAPI
    from launchkey_envelope.middleware.fastapi import callback_router

    def on_result(result):
        if isinstance(result, DeOrbitCallback):
            sessions.end_for(result.user_hash)

    app = FastAPI()
    app.include_router(callback_router(client, on_result))
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import PlainTextResponse, Response

from launchkey_envelope._logging import get_logger
from launchkey_envelope.callbacks import CallbackResult
from launchkey_envelope.client import LaunchKeyClient
from launchkey_envelope.constants import CALLBACK_PATH
from launchkey_envelope.exceptions import LaunchKeyError
from launchkey_envelope.models import RocketCreated

__all__ = [
    "callback_router",
]

_logger = get_logger(__name__)

CallbackHook = Callable[[CallbackResult], Any]
"""Receives every successfully handled AuthResponse or DeOrbitCallback."""

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _collect_parameters(request: Request, body: bytes) -> dict[str, str]:
    """Merge query parameters with urlencoded form fields (form wins)."""
    parameters = dict(request.query_params)
    content_type = request.headers.get("content-type", "")
    if body and content_type.startswith(_FORM_CONTENT_TYPE):
        parameters.update(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))
    return parameters


def callback_router(
    client: LaunchKeyClient,
    on_result: CallbackHook | None = None,
    path: str = CALLBACK_PATH,
) -> APIRouter:
    """
    Build a router that receives service callbacks.

    Args:
        client: Client whose envelope and key cache validate the callbacks
        on_result: Hook called with each auth or de-orbit result
        path: Route path the service is configured to call

    Returns:
        APIRouter to include in the application
    """
    router = APIRouter()

    @router.api_route(path, methods=["GET", "POST"], include_in_schema=False)
    async def launchkey_callback(request: Request) -> Response:
        body = await request.body()
        parameters = _collect_parameters(request, body)
        answers: list[Response] = []

        def respond_with_key(public_key: str) -> None:
            answers.append(PlainTextResponse(public_key, status_code=200))

        try:
            result = await run_in_threadpool(client.handle_callback, parameters, respond_with_key, body=body)
        except LaunchKeyError as e:
            # Don't expose validation details to the caller
            _logger.debug("Callback rejected: path=%s error_type=%s", path, type(e).__name__)
            return PlainTextResponse("Invalid callback", status_code=400)

        if isinstance(result, RocketCreated) and answers:
            _logger.debug("Rocket creation handshake answered: path=%s", path)
            return answers[0]

        if on_result is not None:
            await run_in_threadpool(on_result, result)
        return Response(status_code=200)

    return router
