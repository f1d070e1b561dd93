# Projects service: team-scoped CRUD, duplicate-name rule, and schedule stats.
# Errors are raised pre-classified (NotFoundError, PermissionDeniedError, ...)
# so the request guard maps them to status codes without message matching.

from __future__ import annotations

import uuid
from collections import Counter
from datetime import UTC, date, datetime
from typing import Any

import structlog

from projectdesk.auth import Session
from projectdesk.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from projectdesk.repositories.projects import ProjectRepository
from projectdesk.schemas import (
    Project,
    ProjectCreate,
    ProjectStats,
    ProjectStatus,
    ProjectUpdate,
    ProjectWithStats,
    StatsSummary,
    StatusCounts,
)
from projectdesk.security.sanitize import sanitize_input

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 50

# Columns an update may change but never clear
_REQUIRED_FIELDS: tuple[str, ...] = ("name", "start_date", "end_date", "estimated_budget", "status")


class ProjectsService:
    """Project operations for an authenticated session.

    Stored in app.state during lifespan, injected via Depends().
    """

    def __init__(self, repository: ProjectRepository) -> None:
        self._repository = repository

    # ── Reads ────────────────────────────────────────────────────────────────

    async def list_projects(
        self,
        session: Session,
        *,
        status: ProjectStatus | None = None,
        search: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Project]:
        """Team projects, newest first, optionally filtered by status and text."""
        projects = await self._repository.list_by_team(session.team_id)

        if status is not None:
            projects = [p for p in projects if p.status == status]
        if search:
            needle = search.lower()
            projects = [
                p
                for p in projects
                if needle in p.name.lower() or needle in (p.description or "").lower()
            ]

        projects = _newest_first(projects)
        return projects[offset : offset + limit]

    async def get_project(self, session: Session, project_id: str) -> Project:
        project = await self._repository.get(project_id)
        # Other teams' projects are indistinguishable from missing ones
        if project is None or project.team_id != session.team_id:
            raise NotFoundError("Project not found")
        return project

    async def get_project_with_stats(
        self, session: Session, project_id: str, today: date | None = None
    ) -> ProjectWithStats:
        project = await self.get_project(session, project_id)
        return with_stats(project, today or date.today())

    async def check_duplicate_name(
        self, session: Session, name: str, exclude_id: str | None = None
    ) -> bool:
        """True when another project in the caller's team already uses ``name``."""
        matches = await self._repository.find_by_name(
            session.team_id, sanitize_input(name.strip()), exclude_id
        )
        return len(matches) > 0

    async def project_counts(self, session: Session) -> StatusCounts:
        projects = await self._repository.list_by_team(session.team_id)
        tally = Counter(project.status.value for project in projects)
        return StatusCounts(total=len(projects), **tally)

    async def project_stats(self, session: Session, today: date | None = None) -> ProjectStats:
        """Per-project schedule figures plus budget/overdue summary."""
        today = today or date.today()
        projects = await self._repository.list_by_team(session.team_id)
        projects = _newest_first(projects)
        stats = [with_stats(p, today) for p in projects]

        total_budget = sum(p.estimated_budget for p in stats)
        summary = StatsSummary(
            total_budget=total_budget,
            average_budget=round(total_budget / len(stats)) if stats else 0,
            active_projects=sum(1 for p in stats if p.status == ProjectStatus.active),
            overdue_projects=sum(
                1 for p in stats if p.status == ProjectStatus.active and p.days_remaining < 0
            ),
            total_projects=len(stats),
        )
        return ProjectStats(
            counts=await self.project_counts(session),
            summary=summary,
            projects=stats,
        )

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create_project(
        self, session: Session, data: dict[str, Any] | ProjectCreate
    ) -> Project:
        payload = data if isinstance(data, ProjectCreate) else ProjectCreate.model_validate(data)
        name = sanitize_input(payload.name)
        description = sanitize_input(payload.description) if payload.description else None

        await self._reject_duplicate(session, name)

        now = datetime.now(UTC)
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            start_date=payload.start_date,
            end_date=payload.end_date,
            estimated_budget=payload.estimated_budget,
            status=ProjectStatus.active,
            team_id=session.team_id,
            created_by=session.user_id,
            created_at=now,
            updated_at=now,
        )
        await self._repository.insert(project)
        logger.info("project_created", project_id=project.id, team_id=project.team_id)
        return project

    async def update_project(
        self, session: Session, project_id: str, data: dict[str, Any] | ProjectUpdate
    ) -> Project:
        payload = data if isinstance(data, ProjectUpdate) else ProjectUpdate.model_validate(data)
        changes = payload.model_dump(exclude_unset=True)
        for field in _REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationFailedError(f"Validation error: {field} may not be null")
        if "name" in changes:
            changes["name"] = sanitize_input(changes["name"])
        if changes.get("description") is not None:
            changes["description"] = sanitize_input(changes["description"])

        existing = await self._owned_project(session, project_id, action="update")

        if "name" in changes:
            await self._reject_duplicate(session, changes["name"], exclude_id=project_id)

        start = changes.get("start_date") or existing.start_date
        end = changes.get("end_date") or existing.end_date
        if end < start:
            raise ValidationFailedError("End date must be on or after start date")

        changes["updated_at"] = datetime.now(UTC)
        updated = await self._repository.update(project_id, changes)
        if updated is None:
            raise NotFoundError("Project not found")
        logger.info("project_updated", project_id=project_id, fields=sorted(changes))
        return updated

    async def archive_project(self, session: Session, project_id: str) -> Project:
        """Soft delete: status → archived."""
        existing = await self._owned_project(session, project_id, action="archive")
        if existing.status == ProjectStatus.archived:
            raise ValidationFailedError("Project is already archived")

        updated = await self._repository.update(
            project_id, {"status": ProjectStatus.archived, "updated_at": datetime.now(UTC)}
        )
        if updated is None:
            raise NotFoundError("Project not found")
        logger.info("project_archived", project_id=project_id)
        return updated

    async def delete_project(self, session: Session, project_id: str) -> None:
        """Hard delete."""
        await self._owned_project(session, project_id, action="delete")
        if not await self._repository.delete(project_id):
            raise NotFoundError("Project not found")
        logger.info("project_deleted", project_id=project_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _owned_project(self, session: Session, project_id: str, *, action: str) -> Project:
        project = await self.get_project(session, project_id)
        if project.created_by != session.user_id:
            logger.warning(
                "project_permission_denied",
                project_id=project_id,
                user_id=session.user_id,
                action=action,
            )
            raise PermissionDeniedError(f"You do not have permission to {action} this project")
        return project

    async def _reject_duplicate(
        self, session: Session, name: str, exclude_id: str | None = None
    ) -> None:
        if await self._repository.find_by_name(session.team_id, name, exclude_id):
            raise ValidationFailedError(
                f'A project with the name "{name}" already exists in your team. '
                "Please choose a different name."
            )


def with_stats(project: Project, today: date) -> ProjectWithStats:
    """Attach duration, days remaining and elapsed-time percentage."""
    duration = (project.end_date - project.start_date).days
    remaining = (project.end_date - today).days
    if duration <= 0:
        progress = 100 if today >= project.end_date else 0
    else:
        elapsed = (today - project.start_date).days
        progress = round(min(max(elapsed / duration, 0.0), 1.0) * 100)

    return ProjectWithStats(
        **project.model_dump(),
        duration_days=duration,
        days_remaining=remaining,
        time_progress_percent=progress,
    )


def _newest_first(projects: list[Project]) -> list[Project]:
    # Repository returns insertion order; reversing first keeps equal timestamps newest-first
    return sorted(reversed(projects), key=lambda p: p.created_at, reverse=True)
