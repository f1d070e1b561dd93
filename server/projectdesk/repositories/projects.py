# ─────────────────────────────────────────────────────────────────────────────
# Project Repository — data backend behind the projects service
# ─────────────────────────────────────────────────────────────────────────────
# The service only talks to the ProjectRepository protocol, so a hosted
# database client can replace the in-memory implementation.
#
# Thread-safe: sync callers may run in the thread pool, so every access to
# the backing dict holds a threading.Lock. Rows are copied in and out.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
from typing import Any, Protocol

from projectdesk.schemas import Project


class ProjectRepository(Protocol):
    """Storage operations the projects service needs."""

    async def insert(self, project: Project) -> Project: ...

    async def get(self, project_id: str) -> Project | None: ...

    async def update(self, project_id: str, changes: dict[str, Any]) -> Project | None: ...

    async def delete(self, project_id: str) -> bool: ...

    async def list_by_team(self, team_id: str) -> list[Project]: ...

    async def find_by_name(
        self, team_id: str, name: str, exclude_id: str | None = None
    ) -> list[Project]: ...


class InMemoryProjectRepository:
    """Dict-backed repository. Data lives as long as the process."""

    def __init__(self) -> None:
        self._rows: dict[str, Project] = {}
        self._lock = threading.Lock()

    async def insert(self, project: Project) -> Project:
        with self._lock:
            if project.id in self._rows:
                raise ValueError(f"Duplicate project id {project.id}")
            self._rows[project.id] = project.model_copy()
        return project

    async def get(self, project_id: str) -> Project | None:
        with self._lock:
            row = self._rows.get(project_id)
            return row.model_copy() if row else None

    async def update(self, project_id: str, changes: dict[str, Any]) -> Project | None:
        with self._lock:
            row = self._rows.get(project_id)
            if row is None:
                return None
            updated = row.model_copy(update=changes)
            self._rows[project_id] = updated
            return updated.model_copy()

    async def delete(self, project_id: str) -> bool:
        with self._lock:
            return self._rows.pop(project_id, None) is not None

    async def list_by_team(self, team_id: str) -> list[Project]:
        with self._lock:
            return [row.model_copy() for row in self._rows.values() if row.team_id == team_id]

    async def find_by_name(
        self, team_id: str, name: str, exclude_id: str | None = None
    ) -> list[Project]:
        with self._lock:
            return [
                row.model_copy()
                for row in self._rows.values()
                if row.team_id == team_id and row.name == name and row.id != exclude_id
            ]
