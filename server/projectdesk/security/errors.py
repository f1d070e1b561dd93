# ─────────────────────────────────────────────────────────────────────────────
# Error Classification — raised exception → kind, public message, status
# ─────────────────────────────────────────────────────────────────────────────
# Resolution order:
#   1. ProjectDeskError subclasses carry their kind; pydantic ValidationError
#      is always a validation failure.
#   2. Uninstrumented errors are matched case-insensitively against
#      MARKER_RULES. The table decides externally visible status codes:
#      any change bumps MARKER_RULES_VERSION.
#   3. Empty message → UNKNOWN_ERROR, anything else → INTERNAL_ERROR.
#
# debug_detail (the traceback) is only ever attached outside production.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from projectdesk.exceptions import ErrorKind, ProjectDeskError

MARKER_RULES_VERSION = 1

# First matching rule wins; order matters ("session not found" is auth).
MARKER_RULES: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.VALIDATION_ERROR, ("validationerror", "validation error", "zoderror", "schema")),
    (ErrorKind.PERMISSION_DENIED, ("permission", "not authorized", "forbidden")),
    (ErrorKind.AUTH_REQUIRED, ("not authenticated", "session", "authentication required")),
    (ErrorKind.NOT_FOUND, ("not found",)),
)

PUBLIC_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION_ERROR: "Invalid input data",
    ErrorKind.PERMISSION_DENIED: "You do not have permission to perform this action",
    ErrorKind.AUTH_REQUIRED: "Authentication required",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.INTERNAL_ERROR: "An error occurred. Please try again.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred",
}

STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL_ERROR: 500,
    ErrorKind.UNKNOWN_ERROR: 500,
}


@dataclass(frozen=True)
class ClassifiedError:
    """A failed request, reduced to what may be sent back."""

    kind: ErrorKind
    public_message: str
    debug_detail: str | None = None

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.public_message, "code": self.kind.value}
        if self.debug_detail:
            body["details"] = self.debug_detail
        return body


def match_markers(message: str) -> ErrorKind | None:
    """Return the kind whose marker phrase appears in ``message``, if any."""
    lowered = message.lower()
    for kind, phrases in MARKER_RULES:
        if any(phrase in lowered for phrase in phrases):
            return kind
    return None


def resolve_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ProjectDeskError):
        return exc.kind
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION_ERROR

    message = str(exc)
    if not message:
        return ErrorKind.UNKNOWN_ERROR
    return match_markers(message) or ErrorKind.INTERNAL_ERROR


def classify_error(
    exc: BaseException, *, production: bool, kind: ErrorKind | None = None
) -> ClassifiedError:
    """Normalize ``exc`` into a ClassifiedError.

    Args:
        exc: Whatever the handler raised.
        production: In production the public message is the fixed text for
            the kind and no debug detail is attached.
        kind: Skip resolution and use this kind (caller already knows).
    """
    resolved = kind or resolve_kind(exc)

    if production:
        return ClassifiedError(kind=resolved, public_message=PUBLIC_MESSAGES[resolved])

    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return ClassifiedError(
        kind=resolved,
        public_message=str(exc) or PUBLIC_MESSAGES[resolved],
        debug_detail=detail,
    )
