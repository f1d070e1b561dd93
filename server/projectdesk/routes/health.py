# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness and readiness (never guarded)
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. Near-zero cost, always 200.
#   /health/ready  → Readiness probe. 503 until lifespan has wired the
#                    request guard and projects service into app.state.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from projectdesk.schemas import LivenessResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe — is the process alive? No deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    state = request.app.state
    guard = getattr(state, "request_guard", None)
    ready = guard is not None and getattr(state, "projects_service", None) is not None

    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        environment=state.settings.environment,
        rate_windows=len(guard.store) if guard is not None else 0,
    )
    return JSONResponse(status_code=200 if ready else 503, content=response.model_dump())
