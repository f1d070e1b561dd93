# ─────────────────────────────────────────────────────────────────────────────
# Tests — RequestGuard pipeline (rate limit → origin → handler + errors)
# ─────────────────────────────────────────────────────────────────────────────

import json

import pytest
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from projectdesk.exceptions import NotFoundError
from projectdesk.security.guard import GuardConfig, RequestGuard

SAME_ORIGIN = {"origin": "https://example.com", "host": "example.com"}


class CountingHandler:
    """Async handler that records calls and returns (or raises) a preset result."""

    def __init__(self, response: Response | None = None, error: Exception | None = None) -> None:
        self.calls = 0
        self._response = response or JSONResponse({"ok": True}, status_code=201, headers={"X-Custom": "1"})
        self._error = error

    async def __call__(self, request: Request) -> Response:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._response


def _body(response: Response) -> dict:
    return json.loads(response.body)


@pytest.fixture
def guard(store) -> RequestGuard:
    return RequestGuard(store, production=True, development=False)


@pytest.fixture
def dev_guard(store) -> RequestGuard:
    return RequestGuard(store, production=False, development=True)


class TestRateLimitStep:
    async def test_under_budget_passes_through(self, guard, make_request):
        handler = CountingHandler()
        response = await guard.guard(make_request(headers=SAME_ORIGIN), handler)
        assert response.status_code == 201
        assert handler.calls == 1

    async def test_429_after_budget_and_handler_not_called(self, guard, clock, make_request):
        handler = CountingHandler()
        config = GuardConfig(require_origin_check=False, rate_limit_key="projects:get")
        for _ in range(100):
            assert (await guard.guard(make_request(), handler, config)).status_code == 201
        clock.advance(12.5)

        response = await guard.guard(make_request(), handler, config)

        assert response.status_code == 429
        assert _body(response) == {"error": "Rate limit exceeded", "retryAfter": 48}
        assert response.headers["Retry-After"] == "48"
        assert handler.calls == 100

    async def test_key_combines_client_and_operation(self, guard, store, make_request):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        config = GuardConfig(require_origin_check=False, rate_limit_key="projects:stats")
        await guard.guard(make_request(headers=headers), CountingHandler(), config)
        await guard.guard(make_request(headers=headers), CountingHandler(), config)

        window = store.get("203.0.113.7:projects:stats")
        assert window is not None
        assert window.count == 2

    async def test_no_operation_key_uses_client_alone(self, guard, store, make_request):
        config = GuardConfig(require_origin_check=False)
        await guard.guard(make_request(headers={"x-real-ip": "198.51.100.4"}), CountingHandler(), config)
        assert store.get("198.51.100.4").count == 1

    async def test_operations_have_separate_budgets(self, guard, make_request):
        read = GuardConfig(require_origin_check=False, rate_limit_key="projects:get")
        stats = GuardConfig(require_origin_check=False, rate_limit_key="projects:stats")
        for _ in range(101):
            await guard.guard(make_request(), CountingHandler(), read)
        response = await guard.guard(make_request(), CountingHandler(), stats)
        assert response.status_code == 201

    async def test_rate_limit_checked_before_origin(self, guard, make_request):
        config = GuardConfig(require_origin_check=True, rate_limit_key="projects:post")
        for _ in range(100):
            await guard.guard(make_request(), CountingHandler(), config)
        response = await guard.guard(make_request(), CountingHandler(), config)
        assert response.status_code == 429

    async def test_back_to_back_calls_increment_by_two(self, guard, store, make_request):
        config = GuardConfig(require_origin_check=False, rate_limit_key="op")
        await guard.guard(make_request(), CountingHandler(), config)
        first = store.get("unknown:op")
        await guard.guard(make_request(), CountingHandler(), config)
        second = store.get("unknown:op")
        assert second.count - first.count == 1
        assert second.count == 2
        assert second.reset_at == first.reset_at


class TestOriginStep:
    async def test_missing_origin_rejected_when_required(self, guard, make_request):
        handler = CountingHandler()
        response = await guard.guard(make_request(headers={"host": "example.com"}), handler)
        assert response.status_code == 403
        assert _body(response) == {"error": "Invalid request origin"}
        assert handler.calls == 0

    async def test_missing_origin_passes_when_not_required(self, guard, make_request):
        handler = CountingHandler()
        config = GuardConfig(require_origin_check=False)
        response = await guard.guard(make_request(headers={"host": "example.com"}), handler, config)
        assert response.status_code == 201
        assert handler.calls == 1

    async def test_relaxed_mode_tolerates_missing_origin(self, guard, make_request):
        config = GuardConfig(require_origin_check=True, allow_missing_origin=True)
        response = await guard.guard(make_request(headers={"host": "example.com"}), CountingHandler(), config)
        assert response.status_code == 201

    async def test_relaxed_mode_rejects_foreign_origin(self, guard, make_request):
        config = GuardConfig(require_origin_check=True, allow_missing_origin=True)
        headers = {"origin": "https://evil.com", "host": "example.com"}
        response = await guard.guard(make_request(headers=headers), CountingHandler(), config)
        assert response.status_code == 403

    async def test_foreign_origin_rejected(self, guard, make_request):
        headers = {"origin": "https://evil.com", "host": "example.com"}
        response = await guard.guard(make_request(headers=headers), CountingHandler())
        assert response.status_code == 403

    async def test_localhost_rejected_in_production(self, guard, make_request):
        headers = {"origin": "http://localhost:3000", "host": "example.com"}
        response = await guard.guard(make_request(headers=headers), CountingHandler())
        assert response.status_code == 403

    async def test_localhost_accepted_in_development(self, dev_guard, make_request):
        headers = {"origin": "http://localhost:3000", "host": "example.com"}
        response = await dev_guard.guard(make_request(headers=headers), CountingHandler())
        assert response.status_code == 201

    async def test_localhost_needs_development_not_just_non_production(self, store, make_request):
        test_mode_guard = RequestGuard(store, production=False, development=False)
        headers = {"origin": "http://127.0.0.1:8000", "host": "example.com"}
        response = await test_mode_guard.guard(make_request(headers=headers), CountingHandler())
        assert response.status_code == 403


class TestHandlerStep:
    async def test_success_response_returned_verbatim(self, guard, make_request):
        expected = JSONResponse({"ok": True}, status_code=202, headers={"X-Custom": "yes"})
        response = await guard.guard(make_request(headers=SAME_ORIGIN), CountingHandler(expected))
        assert response is expected

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (RuntimeError("User not authenticated"), 401, "AUTH_REQUIRED"),
            (RuntimeError("Project not found"), 404, "NOT_FOUND"),
            (RuntimeError("You do not have permission to update this project"), 403, "PERMISSION_DENIED"),
            (RuntimeError("ZodError: invalid"), 400, "VALIDATION_ERROR"),
            (NotFoundError("gone"), 404, "NOT_FOUND"),
        ],
    )
    async def test_classified_status(self, guard, error, status, code, make_request):
        response = await guard.guard(make_request(headers=SAME_ORIGIN), CountingHandler(error=error))
        assert response.status_code == status
        assert _body(response)["code"] == code
        assert "details" not in _body(response)

    async def test_unrecognized_error_is_generic_in_production(self, guard, make_request):
        handler = CountingHandler(error=KeyError("internal column projects.secret_budget"))
        response = await guard.guard(make_request(headers=SAME_ORIGIN), handler)
        assert response.status_code == 500
        assert _body(response) == {
            "error": "An error occurred. Please try again.",
            "code": "INTERNAL_ERROR",
        }

    async def test_unrecognized_error_is_raw_outside_production(self, dev_guard, make_request):
        handler = CountingHandler(error=RuntimeError("database exploded"))
        response = await dev_guard.guard(make_request(headers=SAME_ORIGIN), handler)
        body = _body(response)
        assert response.status_code == 500
        assert body["error"] == "database exploded"
        assert body["code"] == "INTERNAL_ERROR"
        assert "RuntimeError: database exploded" in body["details"]

    async def test_nothing_escapes_the_guard(self, guard, make_request):
        class Weird(Exception):
            def __str__(self) -> str:
                return ""

        response = await guard.guard(make_request(headers=SAME_ORIGIN), CountingHandler(error=Weird()))
        assert response.status_code == 500
        assert _body(response)["code"] == "UNKNOWN_ERROR"
