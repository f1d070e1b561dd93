"""Request guard — rate windows, origin checks, error classification."""

from projectdesk.security.errors import ClassifiedError, classify_error
from projectdesk.security.guard import GuardConfig, RequestGuard
from projectdesk.security.rate_window import (
    InMemoryRateWindowStore,
    RateLimitDecision,
    RateWindow,
    RateWindowStore,
)
from projectdesk.security.sanitize import sanitize_input

__all__ = [
    "ClassifiedError",
    "GuardConfig",
    "InMemoryRateWindowStore",
    "RateLimitDecision",
    "RateWindow",
    "RateWindowStore",
    "RequestGuard",
    "classify_error",
    "sanitize_input",
]
