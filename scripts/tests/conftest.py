from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[2]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def _clean_clickhouse_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``CLICKHOUSE_*`` exports out of the tests."""
    for key in list(os.environ):
        if key.startswith("CLICKHOUSE_"):
            monkeypatch.delenv(key, raising=False)


@dataclass(slots=True)
class FakeCloudApi:
    """In-memory stand-in for the ClickHouse Cloud organization API."""

    create_status: int = 200
    create_payload: object = field(
        default_factory=lambda: {
            "result": {
                "service": {
                    "id": "svc-123",
                    "name": "railway-1",
                    "endpoints": [
                        {"protocol": "https", "host": "h1", "port": 443},
                        {"protocol": "nativesecure", "host": "h1", "port": 9000},
                    ],
                },
                "password": "p",
            }
        }
    )
    states: list[str] = field(default_factory=lambda: ["running"])
    status_code: int = 200
    requests: list[httpx.Request] = field(default_factory=list)

    @property
    def create_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def status_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            if isinstance(self.create_payload, str):
                return httpx.Response(self.create_status, text=self.create_payload)
            return httpx.Response(self.create_status, json=self.create_payload)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="nope")
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return httpx.Response(200, json={"result": {"state": state}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last_json(self) -> dict[str, object]:
        return json.loads(self.create_calls[-1].content)


@pytest.fixture
def fake_cloud() -> FakeCloudApi:
    return FakeCloudApi()
