"""Callback endpoint tests through a FastAPI application.

Tests the full callback flow:
- Service calls the endpoint with query or form parameters
- The router validates the callback with the client's envelope
- Rocket creation is answered with the public key as text/plain
- Auth and de-orbit results reach the application hook
"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from launchkey_envelope.callbacks import CallbackResult
from launchkey_envelope.client import LaunchKeyClient
from launchkey_envelope.constants import CALLBACK_PATH
from launchkey_envelope.middleware.fastapi import _collect_parameters, callback_router  # pyright: ignore[reportPrivateUsage]
from launchkey_envelope.models import AuthResponse, DeOrbitCallback
from tests.conftest import ServiceSimulator, ping_payload

ROCKET_TOKEN = "eyJhbGciOiJSUzI1NiJ9.eyJhcHAiOjF9.c2lnbmF0dXJl"


# === Fixtures ===


@pytest.fixture
def results() -> list[CallbackResult]:
    return []


@pytest.fixture
def app_client(
    client_factory: Callable[..., LaunchKeyClient],
    service: ServiceSimulator,
    results: list[CallbackResult],
) -> TestClient:
    """TestClient for an app whose LaunchKey client only ever pings."""
    launchkey = client_factory(lambda request: httpx.Response(200, json=ping_payload(service.public_pem)))
    app = FastAPI()
    app.include_router(callback_router(launchkey, results.append))
    return TestClient(app)


def auth_parameters(service: ServiceSimulator) -> dict[str, str]:
    package: dict[str, Any] = {"auth_request": "req-1", "device_id": "dev-1", "response": "true"}
    return {"auth": service.encrypt_for_client(package), "auth_request": "req-1", "user_hash": "uh-1"}


def deorbit_parameters(service: ServiceSimulator) -> dict[str, str]:
    deorbit = json.dumps({"launchkey_time": "2026-10-17 12:30:45", "user_hash": "uh-1"})
    return {"deorbit": deorbit, "signature": service.sign(deorbit.encode())}


# === Tests ===


class TestAuthCallback:
    """Test auth callbacks reaching the application hook."""

    def test_query_parameters(
        self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]
    ) -> None:
        response = app_client.get(CALLBACK_PATH, params=auth_parameters(service))

        assert response.status_code == 200
        assert len(results) == 1
        assert isinstance(results[0], AuthResponse)
        assert results[0].authorized is True

    def test_form_parameters(
        self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]
    ) -> None:
        response = app_client.post(CALLBACK_PATH, data=auth_parameters(service))

        assert response.status_code == 200
        assert isinstance(results[0], AuthResponse)
        assert results[0].user_hash == "uh-1"

    def test_query_and_form_merged(
        self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]
    ) -> None:
        parameters = auth_parameters(service)
        auth = parameters.pop("auth")

        response = app_client.post(CALLBACK_PATH, params=parameters, data={"auth": auth})

        assert response.status_code == 200
        assert isinstance(results[0], AuthResponse)


class TestDeOrbitCallback:
    def test_deorbit(self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]) -> None:
        response = app_client.post(CALLBACK_PATH, data=deorbit_parameters(service))

        assert response.status_code == 200
        assert isinstance(results[0], DeOrbitCallback)
        assert results[0].user_hash == "uh-1"

    def test_bad_signature_rejected(
        self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]
    ) -> None:
        parameters = deorbit_parameters(service)
        parameters["signature"] = service.sign(b"something else")

        response = app_client.post(CALLBACK_PATH, data=parameters)

        assert response.status_code == 400
        assert response.text == "Invalid callback"
        assert results == []


class TestRocketCreation:
    def test_answers_with_public_key(
        self, app_client: TestClient, service: ServiceSimulator, results: list[CallbackResult]
    ) -> None:
        response = app_client.post(CALLBACK_PATH, content=ROCKET_TOKEN, headers={"Content-Type": "text/plain"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == service.public_pem
        # The handshake is answered by the router, not the hook
        assert results == []


class TestUnknownCallback:
    @pytest.mark.parametrize("parameters", [{}, {"auth": "a"}, {"foo": "bar"}])
    def test_rejected(
        self, app_client: TestClient, results: list[CallbackResult], parameters: dict[str, str]
    ) -> None:
        response = app_client.get(CALLBACK_PATH, params=parameters)

        assert response.status_code == 400
        assert results == []

    def test_custom_path(self, client_factory: Callable[..., LaunchKeyClient]) -> None:
        app = FastAPI()
        app.include_router(callback_router(client_factory(lambda request: httpx.Response(500)), path="/hooks/lk"))

        with TestClient(app) as test_client:
            assert test_client.get("/hooks/lk").status_code == 400
            assert test_client.get(CALLBACK_PATH).status_code == 404


class TestCollectParameters:
    """Test merging of query and form fields."""

    def request(self, query: bytes, content_type: str) -> Request:
        return Request(
            {
                "type": "http",
                "method": "POST",
                "path": CALLBACK_PATH,
                "query_string": query,
                "headers": [(b"content-type", content_type.encode())],
            }
        )

    def test_form_wins_over_query(self) -> None:
        request = self.request(b"auth=query&user_hash=uh-1", "application/x-www-form-urlencoded")

        parameters = _collect_parameters(request, b"auth=form&signature=")

        assert parameters == {"auth": "form", "user_hash": "uh-1", "signature": ""}

    def test_non_form_body_ignored(self) -> None:
        request = self.request(b"auth=query", "text/plain")

        assert _collect_parameters(request, ROCKET_TOKEN.encode()) == {"auth": "query"}
