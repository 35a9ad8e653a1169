import inspect
import json
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio

from taiga_mcp.server import AppContext
from taiga_mcp.taiga_client import TaigaSession

API_URL = "http://taiga.test/api/v1"
API_PREFIX = "/api/v1"

AUTH_RESPONSE = {
    "auth_token": "token-123",
    "refresh": "refresh-456",
    "id": 7,
    "username": "user",
    "full_name": "Test User",
    "email": "user@example.com",
}


class FakeTaiga:
    """
    In-memory stand-in for the Taiga REST API, served through httpx.MockTransport.

    Routes are keyed by (method, path) with the /api/v1 prefix stripped. A
    route value is either a JSON body, a (status, body) tuple, or a callable
    taking the request and returning one of those (or an httpx.Response).
    Every request is recorded in `requests`. Like Taiga, a PATCH to a
    versioned entity without its `version` is rejected with 400.
    """

    VERSIONED = ("/userstories/", "/tasks/", "/issues/", "/epics/", "/wiki/")

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.add("POST", "/auth", AUTH_RESPONSE)

    def add(self, method, path, response):
        self.routes[(method.upper(), path)] = response

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method.upper() and self.path_of(r) == path]

    @staticmethod
    def path_of(request):
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path

    @staticmethod
    def body_of(request):
        return json.loads(request.content) if request.content else None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if (request.method == "PATCH" and self.path_of(request).startswith(self.VERSIONED)
                and (self.body_of(request) or {}).get("version") is None):
            return httpx.Response(400, json={"version": "The version parameter is not valid"})
        route = self.routes.get((request.method, self.path_of(request)))
        if route is None:
            return httpx.Response(404, json={"_error_message": "Not found."})

        result = route(request) if callable(route) else route
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, httpx.Response):
            return result
        status, body = result if isinstance(result, tuple) else (200, result)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


@pytest.fixture
def fake_taiga():
    """A fresh fake API with only the login route registered."""
    return FakeTaiga()


@pytest_asyncio.fixture
async def session(fake_taiga):
    """A TaigaSession wired to the fake API with configured credentials."""
    session = TaigaSession(API_URL, "user", "pass", transport=httpx.MockTransport(fake_taiga))
    yield session
    await session.aclose()


@pytest.fixture
def ctx(session):
    """Mimics the FastMCP request context the tools read their session from."""
    return SimpleNamespace(
        request_context=SimpleNamespace(lifespan_context=AppContext(session=session))
    )
