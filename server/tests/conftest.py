# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────
# Builders and header sets are exposed as fixtures.
# ─────────────────────────────────────────────────────────────────────────────

from collections.abc import Callable, Iterator
from contextlib import ExitStack
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from projectdesk.config import Settings
from projectdesk.main import create_app
from projectdesk.security.rate_window import InMemoryRateWindowStore

TOKENS = {"token-alice": "alice", "token-bob": "bob"}


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _build_request(
    method: str = "POST",
    headers: dict[str, str] | None = None,
    path: str = "/api/projects",
) -> Request:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    scope: dict[str, Any] = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": raw,
        "scheme": "http",
        "server": ("testserver", 80),
        "client": ("testclient", 50000),
    }
    return Request(scope)


def _project_body(**overrides: Any) -> dict[str, Any]:
    body = {
        "name": "Website relaunch",
        "description": "New marketing site",
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        "estimated_budget": 12000,
    }
    body.update(overrides)
    return body


# ─── Builders ────────────────────────────────────────────────────────────────


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Bare Starlette Request for calling the guard without an app."""
    return _build_request


@pytest.fixture
def project_body() -> Callable[..., dict[str, Any]]:
    """Valid create payload; keyword overrides replace single fields."""
    return _project_body


# ─── Headers ─────────────────────────────────────────────────────────────────


@pytest.fixture
def alice() -> dict[str, str]:
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def bob() -> dict[str, str]:
    return {"Authorization": "Bearer token-bob"}


@pytest.fixture
def same_origin() -> dict[str, str]:
    """Origin matching the TestClient's Host header."""
    return {"Origin": "http://testserver"}


@pytest.fixture
def alice_write(alice: dict[str, str], same_origin: dict[str, str]) -> dict[str, str]:
    return {**alice, **same_origin}


# ─── Rate windows ────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryRateWindowStore:
    """Store with a hand-driven clock and the random sweep switched off."""
    return InMemoryRateWindowStore(
        window_seconds=60.0,
        max_requests=100,
        sweep_probability=0.01,
        clock=clock,
        rand=lambda: 1.0,
    )


# ─── App clients ─────────────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing — non-production, slowapi ceiling out of the way."""
    return Settings(
        environment="test",
        session_tokens=TOKENS,
        http_rate_limit="10000/minute",
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def client_factory(test_settings: Settings) -> Iterator[Callable[..., TestClient]]:
    """Build a started TestClient from test_settings plus overrides.

    Entering the client context runs lifespan, which wires app.state.
    Every client built here is closed at teardown.
    """
    with ExitStack() as stack:

        def build(**overrides: Any) -> TestClient:
            settings = test_settings.model_copy(update=overrides)
            app = create_app(settings)
            return stack.enter_context(TestClient(app, raise_server_exceptions=False))

        yield build


@pytest.fixture
def client(client_factory: Callable[..., TestClient]) -> TestClient:
    return client_factory()


@pytest.fixture
def production_client(client_factory: Callable[..., TestClient]) -> TestClient:
    return client_factory(environment="production")


@pytest.fixture
def development_client(client_factory: Callable[..., TestClient]) -> TestClient:
    return client_factory(environment="development")
