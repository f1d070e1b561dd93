# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProjectStatus(StrEnum):
    """Project lifecycle state."""

    active = "active"
    completed = "completed"
    archived = "archived"


class ProjectCreate(BaseModel):
    """Body of POST /api/projects."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    start_date: date
    end_date: date
    estimated_budget: float = Field(..., gt=0, allow_inf_nan=False)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        return v

    @model_validator(mode="after")
    def end_not_before_start(self) -> "ProjectCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class ProjectUpdate(BaseModel):
    """Body of PUT /api/projects/{id}. Every field optional."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    start_date: date | None = None
    end_date: date | None = None
    estimated_budget: float | None = Field(None, gt=0, allow_inf_nan=False)
    status: ProjectStatus | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Project name is required")
        return v


class Project(BaseModel):
    """A stored project."""

    id: str
    name: str
    description: str | None = None
    start_date: date
    end_date: date
    estimated_budget: float
    status: ProjectStatus = ProjectStatus.active
    team_id: str
    created_by: str
    created_at: datetime
    updated_at: datetime


class ProjectWithStats(Project):
    """Project plus schedule figures derived relative to a given day."""

    duration_days: int
    days_remaining: int
    time_progress_percent: int = Field(..., ge=0, le=100)


class StatusCounts(BaseModel):
    active: int = 0
    completed: int = 0
    archived: int = 0
    total: int = 0


class StatsSummary(BaseModel):
    """Aggregate figures for GET /api/projects/stats (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    total_budget: float = Field(0, serialization_alias="totalBudget")
    average_budget: int = Field(0, serialization_alias="averageBudget")
    active_projects: int = Field(0, serialization_alias="activeProjects")
    overdue_projects: int = Field(0, serialization_alias="overdueProjects")
    total_projects: int = Field(0, serialization_alias="totalProjects")


class ProjectStats(BaseModel):
    counts: StatusCounts
    summary: StatsSummary
    projects: list[ProjectWithStats]


class LivenessResponse(BaseModel):
    """Liveness probe — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness probe — can the instance serve traffic?"""

    status: str  # "ready" or "not_ready"
    environment: str
    rate_windows: int
