"""Pytest configuration - loads .env and provides a fake transport."""

import io
import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from vsts_cli.core.session import Session

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


class FakeResponse:
    """Minimal stand-in for the object returned by urlopen."""

    def __init__(self, payload: Any = None, raw: bytes | None = None):
        if raw is None:
            raw = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self._raw = raw

    def read(self) -> bytes:
        return self._raw

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


@dataclass
class FakeTransport:
    """Records requests and replays queued responses or exceptions."""

    responses: list[Any] = field(default_factory=list)
    requests: list[urllib.request.Request] = field(default_factory=list)
    timeouts: list[float] = field(default_factory=list)

    def queue(self, payload: Any = None, raw: bytes | None = None) -> None:
        self.responses.append(FakeResponse(payload, raw))

    def queue_error(self, error: Exception) -> None:
        self.responses.append(error)

    def queue_http_error(self, status: int, payload: Any = None, raw: bytes | None = None) -> None:
        if raw is None:
            raw = b"" if payload is None else json.dumps(payload).encode("utf-8")
        error = urllib.error.HTTPError("https://example.invalid", status, "error", {}, io.BytesIO(raw))
        self.responses.append(error)

    def __call__(self, request: urllib.request.Request, timeout: float | None = None) -> FakeResponse:
        self.requests.append(request)
        self.timeouts.append(timeout)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self) -> urllib.request.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.data.decode("utf-8"))


@pytest.fixture
def transport(monkeypatch) -> FakeTransport:
    """Replace urlopen with a recording fake."""
    fake = FakeTransport()
    monkeypatch.setattr(urllib.request, "urlopen", fake)
    return fake


@pytest.fixture
def session() -> Session:
    return Session.from_credentials("myaccount", "alice", "secret")


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Make time.sleep instant and record the requested delays."""
    delays: list[float] = []
    monkeypatch.setattr("time.sleep", delays.append)
    return delays
