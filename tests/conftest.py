"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure the test environment (no .env, APP_ENV=test)
  - Provide a fake marketplace backend on top of httpx.MockTransport
  - Provide payload factories and a fully wired client container

Collaborators:
  - pytest / pytest-asyncio
  - httpx.MockTransport: in-process fake of the remote API
  - pharmeasy_client.container.build_container

Notes:
  - Fixtures are function scoped: every test gets a fresh session and store
  - Async tests are marked explicitly with @pytest.mark.asyncio
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("APP_ENV", "test")

from pharmeasy_client.crosscutting import config as client_config  # noqa: E402

client_config.Settings.model_config["env_file"] = None

from pharmeasy_client.application.navigation import RecordingNavigator  # noqa: E402
from pharmeasy_client.container import build_container  # noqa: E402
from pharmeasy_client.crosscutting.config import Settings  # noqa: E402
from pharmeasy_client.domain.entities import RoleId, User  # noqa: E402
from pharmeasy_client.infrastructure.storage import InMemoryKeyValueStore  # noqa: E402

API_BASE_URL = "http://api.test/api"
API_PREFIX = "/api"


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Fake backend
# ============================================================================


class FakeBackend:
    """
    Route table for httpx.MockTransport.

    Each route holds a queue of responses; the last one repeats. A response is
    either `(status, json_body)` or a callable `request -> httpx.Response`.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses: Any) -> "FakeBackend":
        self._routes[(method.upper(), path)] = list(responses)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and self._path(r) == path
        ]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content or b"{}")

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, self._path(request)))
        if not queue:
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            return response(request)
        status, body = response
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


# ============================================================================
# Payload factories
# ============================================================================


def user_payload(
    *,
    role_id: int = RoleId.PATIENT,
    status: str | None = None,
    user_id: str = "u-1",
    email: str = "jane@example.com",
) -> dict:
    payload: dict[str, Any] = {
        "id": user_id,
        "email": email,
        "name": "Jane Doe",
        "roleId": int(role_id),
    }
    if status is not None:
        payload["status"] = status
    return payload


def auth_payload(
    *,
    role_id: int = RoleId.PATIENT,
    status: str | None = None,
    token: str = "access-1",
    refresh_token: str | None = "refresh-1",
) -> dict:
    data = {"user": user_payload(role_id=role_id, status=status), "accessToken": token}
    if refresh_token:
        data["refreshToken"] = refresh_token
    return {"success": True, "data": data}


def ok(data: Any = None) -> tuple[int, dict]:
    return 200, {"success": True, "data": data}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url=API_BASE_URL,
        app_env="test",
        retry_max_attempts=2,
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def container(settings, backend, storage, navigator):
    return build_container(
        settings, transport=backend.transport, navigator=navigator, storage=storage
    )


@pytest.fixture
def make_user() -> Callable[..., User]:
    def _make(role_id: int = RoleId.PATIENT, status: str | None = None, **kwargs) -> User:
        return User(
            id=kwargs.get("id", "u-1"),
            email=kwargs.get("email", "jane@example.com"),
            name=kwargs.get("name", "Jane Doe"),
            role_id=int(role_id),
            status=status,
        )

    return _make


@pytest.fixture
def payloads():
    """Expose payload factories to test modules."""

    class _Payloads:
        user = staticmethod(user_payload)
        auth = staticmethod(auth_payload)
        ok = staticmethod(ok)

    return _Payloads
