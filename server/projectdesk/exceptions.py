# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


from enum import StrEnum

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class ErrorKind(StrEnum):
    """Closed set of kinds every failed request is normalized into."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# ── Exception hierarchy ──────────────────────────────────────────────────────


class ProjectDeskError(Exception):
    """Base exception for errors raised by projectdesk handlers.

    Carries a pre-classified kind so the guard does not have to guess
    from the message text.
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailedError(ProjectDeskError):
    """Input failed validation or violates a business rule."""

    kind = ErrorKind.VALIDATION_ERROR


class PermissionDeniedError(ProjectDeskError):
    """Caller is authenticated but may not touch the resource."""

    kind = ErrorKind.PERMISSION_DENIED


class AuthRequiredError(ProjectDeskError):
    """No usable session on the request."""

    kind = ErrorKind.AUTH_REQUIRED


class NotFoundError(ProjectDeskError):
    """Resource missing, or not visible to the caller's team."""

    kind = ErrorKind.NOT_FOUND


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers for errors raised outside a guarded body.

    Guarded routes never let exceptions escape; these cover dependencies,
    request parsing and unguarded routes, and shape the response with the
    same classifier the guard uses.
    """
    from projectdesk.security.errors import classify_error

    def _production(request: Request) -> bool:
        return bool(request.app.state.settings.is_production)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
        classified = classify_error(
            exc, production=_production(request), kind=ErrorKind.VALIDATION_ERROR
        )
        return JSONResponse(status_code=classified.status_code, content=classified.to_body())

    @app.exception_handler(ProjectDeskError)
    async def projectdesk_error_handler(request: Request, exc: ProjectDeskError) -> JSONResponse:
        logger.warning(
            "projectdesk_error", error=exc.message, kind=exc.kind.value, path=request.url.path
        )
        classified = classify_error(exc, production=_production(request))
        return JSONResponse(status_code=classified.status_code, content=classified.to_body())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), path=request.url.path, exc_info=exc)
        classified = classify_error(exc, production=_production(request))
        return JSONResponse(status_code=classified.status_code, content=classified.to_body())
