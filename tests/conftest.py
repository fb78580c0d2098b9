import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from app.processor.models import UploadEvent
from app.remote.client import RemoteClient

Handler = Callable[[httpx.Request], httpx.Response]


class FakeHttp:
    """Routes requests by (method, path) and records every request received."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method, path)] = handler

    def on_json(self, method: str, path: str, body: Any, status_code: int = 200) -> None:
        self.on(method, path, lambda _request: httpx.Response(status_code, json=body))

    def on_status(self, method: str, path: str, status_code: int) -> None:
        self.on(method, path, lambda _request: httpx.Response(status_code))

    def on_timeout(self, method: str, path: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        self.on(method, path, _raise)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        return handler(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> list[Any]:
        return [json.loads(r.content) for r in self.calls(method, path)]

    def remote_client(self, timeout_seconds: float = 1.0) -> RemoteClient:
        return RemoteClient(
            timeout_seconds=timeout_seconds,
            transport=httpx.MockTransport(self.handle),
        )


@pytest.fixture()
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture()
def upload_event() -> UploadEvent:
    """The reference event used across orchestration tests."""
    return UploadEvent(
        content_id="c1",
        s3_key="k1",
        file_name="a.pdf",
        content_type="application/pdf",
        size=1024,
    )
