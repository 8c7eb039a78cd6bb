"""Shared fixtures: httpx clients backed by a recorded route table."""
import json
from typing import Any, Callable, Union

import httpx
import pytest

from saas_mcp.config import Settings

Route = Union[tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeApi:
    """MockTransport handler answering by (method, path) and recording every request.

    A route is either ``(status, payload)`` or a callable taking the request.
    Unknown routes answer 404.
    """

    def __init__(self, routes: dict[tuple[str, str], Route]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")
        if callable(route):
            return route(request)
        status, payload = route
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def fake_api():
    """Factory returning ``(http_client, api)`` for a route table."""
    def factory(routes: dict[tuple[str, str], Route]):
        api = FakeApi(routes)
        return httpx.AsyncClient(transport=httpx.MockTransport(api)), api
    return factory


@pytest.fixture
def settings():
    return Settings(
        slack_token=None,
        azure_token=None,
        atlassian_token=None,
        github_token=None,
        atlassian_cloud_id=None,
        timezone=None,
    )
