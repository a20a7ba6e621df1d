"""Pydantic schemas for the FastAPI server."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.construction import Priority
from src.status_engine import ProjectStatus, StepStatus, TaskStatus


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str


class CascadeChangeResponse(BaseModel):
    """A single status write performed by the cascade."""

    entity: str
    id: int
    old: str
    new: str


class CascadeResponse(BaseModel):
    """Status writes triggered by a mutation."""

    changes: List[CascadeChangeResponse] = Field(default_factory=list)
    preserved_project_id: Optional[int] = Field(
        default=None,
        description="Set when a terminal project status was left untouched by policy",
    )


class DeleteResponse(BaseModel):
    """Response for delete endpoints."""

    deleted: bool
    cascade: Optional[CascadeResponse] = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------
class ProjectResponse(BaseModel):
    """Serialized project."""

    id: int
    title: str
    description: str
    status: ProjectStatus
    budget: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: str
    updated_at: str

    class Config:
        use_enum_values = True


class ProjectCreateRequest(BaseModel):
    """Request body for creating a project."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    status: ProjectStatus = Field(default=ProjectStatus.DRAFT)
    budget: Optional[float] = Field(default=None, ge=0)
    start_date: Optional[date] = Field(default=None, description="ISO date (YYYY-MM-DD)")
    end_date: Optional[date] = Field(default=None, description="ISO date (YYYY-MM-DD)")


class ProjectUpdateRequest(BaseModel):
    """Request body for updating a project. ``status`` is stored as a manual override."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[ProjectStatus] = Field(default=None)
    budget: Optional[float] = Field(default=None, ge=0)
    start_date: Optional[date] = Field(default=None)
    end_date: Optional[date] = Field(default=None)


class ProjectStatsResponse(BaseModel):
    """Dashboard counters."""

    total_projects: int
    projects_by_status: Dict[str, int]
    budget_by_status: Dict[str, float]
    total_budget: float
    average_budget: float
    recent_projects: int


class StatusExplanationResponse(BaseModel):
    """Derived status preview with the rule that produced it."""

    current_status: str
    automatic_status: Optional[str] = None
    rule: str
    reason: str


class ProjectRecomputeResponse(BaseModel):
    """Response for explicit status recomputation."""

    project: ProjectResponse
    cascade: CascadeResponse


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------
class StepResponse(BaseModel):
    """Serialized project step."""

    id: int
    project_id: int
    title: str
    description: str
    order: int
    status: StepStatus
    is_custom: bool
    created_at: str
    updated_at: str

    class Config:
        use_enum_values = True


class StepCreateRequest(BaseModel):
    """Request body for creating a project step."""

    project_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    order: int = Field(default=0, ge=0)
    status: StepStatus = Field(default=StepStatus.PENDING)
    is_custom: bool = Field(default=False)


class StepUpdateRequest(BaseModel):
    """Request body for updating a project step."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    order: Optional[int] = Field(default=None, ge=0)
    status: Optional[StepStatus] = Field(default=None)
    is_custom: Optional[bool] = Field(default=None)


class StepMutationResponse(BaseModel):
    """Step plus the status writes its mutation triggered."""

    step: StepResponse
    cascade: CascadeResponse


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
class TaskResponse(BaseModel):
    """Serialized task."""

    id: int
    step_id: int
    title: str
    description: str
    order: int
    status: TaskStatus
    priority: Priority
    due_date: Optional[date] = None
    created_by: str
    assigned_to: Optional[str] = None
    created_at: str
    updated_at: str

    class Config:
        use_enum_values = True


class TaskCreateRequest(BaseModel):
    """Request body for creating a task."""

    step_id: int
    title: str = Field(..., min_length=1, max_length=200)
    created_by: str = Field(..., min_length=1, description="ID of the acting user")
    description: str = Field(default="", max_length=5000)
    order: int = Field(default=0, ge=0)
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: Priority = Field(default=Priority.MEDIUM)
    due_date: Optional[date] = Field(default=None, description="ISO date (YYYY-MM-DD)")
    assigned_to: Optional[str] = Field(default=None)


class TaskUpdateRequest(BaseModel):
    """Request body for updating a task."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    order: Optional[int] = Field(default=None, ge=0)
    status: Optional[TaskStatus] = Field(default=None)
    priority: Optional[Priority] = Field(default=None)
    due_date: Optional[date] = Field(default=None)
    assigned_to: Optional[str] = Field(default=None)


class TaskMutationResponse(BaseModel):
    """Task plus the status writes its mutation triggered."""

    task: TaskResponse
    cascade: CascadeResponse


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------
class TemplateTaskPayload(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    order: Optional[int] = Field(default=None, ge=0)


class TemplateStepCreateRequest(BaseModel):
    """Request body for adding a step to a template."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    order: int = Field(default=0, ge=0)
    tasks: List[TemplateTaskPayload] = Field(default_factory=list)


class TemplateCreateRequest(BaseModel):
    """Request body for creating a template, optionally with its steps."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    steps: List[TemplateStepCreateRequest] = Field(default_factory=list)


class TemplateUpdateRequest(BaseModel):
    """Request body for updating a template's title or description."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)


class TemplateStepUpdateRequest(BaseModel):
    """Request body for updating a template step. Its tasks are left as they are."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    order: Optional[int] = Field(default=None, ge=0)


class TemplateTaskResponse(BaseModel):
    id: int
    title: str
    description: str
    order: int


class TemplateStepResponse(BaseModel):
    id: int
    title: str
    description: str
    order: int
    tasks: List[TemplateTaskResponse]


class TemplateResponse(BaseModel):
    """Serialized template with its steps and tasks."""

    id: int
    title: str
    description: str
    created_at: str
    updated_at: str
    steps: List[TemplateStepResponse]


class TemplateApplyRequest(BaseModel):
    """Request body for applying a template to a project."""

    project_id: int
    actor_id: str = Field(..., min_length=1, description="Creator recorded on generated tasks")


class TemplateApplyResponse(BaseModel):
    """Steps generated from a template."""

    steps: List[StepResponse]
    cascade: CascadeResponse
