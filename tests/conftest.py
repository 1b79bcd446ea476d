"""Shared fixtures: a scripted fake HTTP server and a sleep recorder."""

from typing import Any, Callable, Dict, List

import httpx
import pytest

from api_runner.api_test_engine import APITestEngine


class FakeServer:
    """Route table for ``httpx.MockTransport``; records every request it sees."""

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, handler):
        if not callable(handler):
            response = handler
            handler = lambda request: response  # noqa: E731
        self.routes[(method.upper(), path)] = handler

    def json(self, method: str, path: str, payload: Any, status: int = 200, headers=None):
        self.add(method, path, lambda request: httpx.Response(status, json=payload, headers=headers))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


class SleepRecorder:
    """Stands in for asyncio.sleep; remembers requested pauses in seconds."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def engine(server, sleeper) -> APITestEngine:
    return APITestEngine(transport=server.transport, sleep=sleeper)
