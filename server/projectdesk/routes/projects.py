# ─────────────────────────────────────────────────────────────────────────────
# /api/projects — projects CRUD, search, duplicate check, stats
# ─────────────────────────────────────────────────────────────────────────────
# Every body runs inside RequestGuard.guard(): per-operation rate window,
# Origin check on mutating routes, and error normalization. Endpoints only
# wire request → service → JSON; validation happens inside the guard so
# malformed bodies come back as the guard's 400, not FastAPI's 422.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from projectdesk.auth import require_session
from projectdesk.dependencies import get_projects_service, get_request_guard
from projectdesk.exceptions import ValidationFailedError
from projectdesk.schemas import ProjectStatus
from projectdesk.security.guard import GuardConfig, RequestGuard
from projectdesk.services.projects import DEFAULT_PAGE_SIZE, ProjectsService

router = APIRouter(prefix="/api/projects")

# Reads skip the Origin check; every mutation requires a same-origin browser request.
GUARD_LIST = GuardConfig(require_origin_check=False, rate_limit_key="projects:get")
GUARD_CREATE = GuardConfig(require_origin_check=True, rate_limit_key="projects:post")
GUARD_STATS = GuardConfig(require_origin_check=False, rate_limit_key="projects:stats")
GUARD_CHECK_DUPLICATE = GuardConfig(
    require_origin_check=False, rate_limit_key="projects:check-duplicate"
)
GUARD_GET = GuardConfig(require_origin_check=False, rate_limit_key="projects:getById")
GUARD_UPDATE = GuardConfig(require_origin_check=True, rate_limit_key="projects:put")
GUARD_DELETE = GuardConfig(require_origin_check=True, rate_limit_key="projects:delete")
GUARD_ARCHIVE = GuardConfig(require_origin_check=True, rate_limit_key="projects:archive")


def _json(payload: dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload)


async def _read_json(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationFailedError("Validation error: request body is not valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationFailedError("Validation error: request body must be a JSON object")
    return body


def _int_param(request: Request, name: str, default: int, minimum: int) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationFailedError(f"Validation error: {name} must be an integer") from exc
    if value < minimum:
        raise ValidationFailedError(f"Validation error: {name} must be >= {minimum}")
    return value


@router.get("")
async def list_projects(
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    """List the caller's projects. Query: status, search, limit, offset."""

    async def handler(req: Request) -> Response:
        session = await require_session(req)
        raw_status = req.query_params.get("status")
        try:
            status = ProjectStatus(raw_status) if raw_status else None
        except ValueError as exc:
            raise ValidationFailedError(f"Validation error: unknown status {raw_status!r}") from exc

        projects = await service.list_projects(
            session,
            status=status,
            search=req.query_params.get("search") or None,
            limit=_int_param(req, "limit", DEFAULT_PAGE_SIZE, 1),
            offset=_int_param(req, "offset", 0, 0),
        )
        return _json({"projects": [p.model_dump(mode="json") for p in projects]})

    return await guard.guard(request, handler, GUARD_LIST)


@router.post("")
async def create_project(
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    async def handler(req: Request) -> Response:
        session = await require_session(req)
        body = await _read_json(req)
        project = await service.create_project(session, body)
        return _json({"project": project.model_dump(mode="json")}, status_code=201)

    return await guard.guard(request, handler, GUARD_CREATE)


@router.get("/stats")
async def project_stats(
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    """Counts by status, budget/overdue summary, and per-project schedule figures."""

    async def handler(req: Request) -> Response:
        session = await require_session(req)
        stats = await service.project_stats(session)
        return _json(stats.model_dump(mode="json", by_alias=True))

    return await guard.guard(request, handler, GUARD_STATS)


@router.get("/check-duplicate")
async def check_duplicate(
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    """Is ``name`` already used in the caller's team? ``excludeId`` skips one project."""

    async def handler(req: Request) -> Response:
        session = await require_session(req)
        name = req.query_params.get("name")
        if not name:
            # Answered directly, like the form's inline check expects
            return _json({"error": "Project name is required"}, status_code=400)

        is_duplicate = await service.check_duplicate_name(
            session, name, req.query_params.get("excludeId") or None
        )
        return _json({"isDuplicate": is_duplicate})

    return await guard.guard(request, handler, GUARD_CHECK_DUPLICATE)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    async def handler(req: Request) -> Response:
        session = await require_session(req)
        if req.query_params.get("withStats") == "true":
            project = await service.get_project_with_stats(session, project_id)
        else:
            project = await service.get_project(session, project_id)
        return _json({"project": project.model_dump(mode="json")})

    return await guard.guard(request, handler, GUARD_GET)


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    async def handler(req: Request) -> Response:
        session = await require_session(req)
        body = await _read_json(req)
        project = await service.update_project(session, project_id, body)
        return _json({"project": project.model_dump(mode="json")})

    return await guard.guard(request, handler, GUARD_UPDATE)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    async def handler(req: Request) -> Response:
        session = await require_session(req)
        await service.delete_project(session, project_id)
        return _json({"success": True})

    return await guard.guard(request, handler, GUARD_DELETE)


@router.post("/{project_id}/archive")
async def archive_project(
    project_id: str,
    request: Request,
    guard: RequestGuard = Depends(get_request_guard),
    service: ProjectsService = Depends(get_projects_service),
) -> Response:
    """Soft delete — status becomes archived."""

    async def handler(req: Request) -> Response:
        session = await require_session(req)
        project = await service.archive_project(session, project_id)
        return _json({"project": project.model_dump(mode="json")})

    return await guard.guard(request, handler, GUARD_ARCHIVE)
