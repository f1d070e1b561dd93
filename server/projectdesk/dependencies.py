# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from projectdesk.security.guard import RequestGuard
from projectdesk.services.projects import ProjectsService


def get_request_guard(request: Request) -> RequestGuard:
    """Inject the RequestGuard into endpoints via Depends()."""
    return request.app.state.request_guard  # type: ignore[no-any-return]


def get_projects_service(request: Request) -> ProjectsService:
    """Inject ProjectsService into endpoints via Depends()."""
    return request.app.state.projects_service  # type: ignore[no-any-return]
