"""Shared fixtures for feedback-bridge tests."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from feedback_api.config import RemoteEndpointConfig
from feedback_api.services.http_client import create_client

BASE_URL = "https://op.example.com"


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset all module-level singletons and caches between tests."""
    yield

    # 1. Settings LRU cache
    from feedback_api.config import get_settings

    get_settings.cache_clear()

    # 2. HTTP client singleton
    import feedback_api.services.http_client as http_mod

    http_mod._client = None

    # 3. Health check cache
    import feedback_api.main as main_mod

    main_mod._health_cache = None


@pytest.fixture
def mock_settings(monkeypatch):
    """Provide a Settings object with safe test defaults."""
    from feedback_api.config import Settings, get_settings

    test_settings = Settings(
        environment="test",
        openproject_url=BASE_URL,
        openproject_api_key="test-key",
        openproject_project_id=3,
        openproject_type_id=None,
        openproject_type_name="Bug",
        openproject_status_name="New",
    )

    get_settings.cache_clear()
    monkeypatch.setattr("feedback_api.config.get_settings", lambda: test_settings)

    # Patch get_settings in every module that imports it directly
    for mod_path in [
        "feedback_api.services.http_client",
        "feedback_api.services.work_packages",
        "feedback_api.routers.feedback",
    ]:
        monkeypatch.setattr(f"{mod_path}.get_settings", lambda: test_settings)

    return test_settings


Handler = Callable[[httpx.Request], httpx.Response]


class FakeOpenProject:
    """Scripted OpenProject API served through ``httpx.MockTransport``.

    Routes are keyed by (method, path). Unknown routes answer 404. Every
    request is recorded so tests can assert on what was (not) sent.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def reply(
        self, method: str, path: str, status: int = 200, json_body: Any = None
    ) -> None:
        self.routes[(method, path)] = lambda request: httpx.Response(
            status, json=json_body
        )

    def fail(self, method: str, path: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.routes[(method, path)] = _raise

    def listing(self, path: str, *names_and_ids: tuple[str, int]) -> None:
        elements = [{"id": cid, "name": name} for name, cid in names_and_ids]
        self.reply("GET", path, json_body={"_embedded": {"elements": elements}})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        return route(request)

    def calls(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and (path is None or r.url.path == path)
        ]

    def json_of(self, request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def remote_config() -> RemoteEndpointConfig:
    return RemoteEndpointConfig(
        base_url=BASE_URL + "/",
        api_key="test-key",
        default_project_id=3,
        default_type_name="Bug",
        default_status_name="New",
    )


@pytest.fixture
def fake_openproject() -> FakeOpenProject:
    return FakeOpenProject()


@pytest.fixture
async def op_client(remote_config, fake_openproject):
    """AsyncClient configured like production but backed by the fake API."""
    client = create_client(
        remote_config, transport=httpx.MockTransport(fake_openproject.handler)
    )
    yield client
    await client.aclose()
