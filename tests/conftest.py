"""Shared pytest fixtures: a scripted fake backend, a controllable clock and a wired client."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, Optional, Union

import httpx
import pytest

from healthyaura.config import Settings
from healthyaura.infrastructure.storage import MemoryStorage
from healthyaura.main import HealthyAuraClient, build_client

Handler = Callable[[httpx.Request], Any]


class FakeBackend:
    """Routes requests by (method, path) and records every request it receives."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Union[Handler, tuple[int, Any]]] = {}
        self.calls: list[httpx.Request] = []

    def on(self, method: str, path: str, status: int = 200, json: Any = None, handler: Optional[Handler] = None):
        self.routes[(method.upper(), path)] = handler or (status, json)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {request.url.path}"})
        if callable(route):
            result = route(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.method == method.upper() and r.url.path == path]


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        API_BASE_URL="http://testserver",
        API_MAX_RETRIES=0,
        API_RETRY_DELAY_SECONDS=0,
        STORAGE_PATH=str(tmp_path / "session.json"),
        GEOLOCATION_TIMEOUT_SECONDS=0.2,
        ENVIRONMENT="test",
    )


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 11, 7, 9, 0, tzinfo=timezone.utc))


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def client(settings, storage, backend, clock) -> Generator[HealthyAuraClient, None, None]:
    app_client = build_client(settings, storage=storage, transport=backend.transport(), clock=clock)
    yield app_client
    run(app_client.api.aclose())


def login_route(backend: FakeBackend, users: dict[str, tuple[str, str]]) -> None:
    """users maps username -> (password, role)."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        entry = users.get(body.get("username"))
        if entry is None or entry[0] != body.get("password"):
            return httpx.Response(401, json={"message": "Invalid username or password"})
        return httpx.Response(
            200,
            json={"token": f"token-{body['username']}", "username": body["username"], "role": entry[1]},
        )

    backend.on("POST", "/auth/login", handler=handler)


def profile_route(backend: FakeBackend, email: str = "user@example.com", points: int = 0, preferences: str = "vegan") -> None:
    backend.on(
        "GET",
        "/profile/me",
        json={"username": None, "email": email, "preferences": preferences, "totalPoints": points},
    )


async def sign_in_as(client: HealthyAuraClient, backend: FakeBackend, username: str = "alice", role: str = "USER", points: int = 0):
    login_route(backend, {username: ("secret", role)})
    profile_route(backend, email=f"{username}@example.com", points=points)
    credential = await client.session.sign_in(username, "secret")
    backend.calls.clear()
    return credential
