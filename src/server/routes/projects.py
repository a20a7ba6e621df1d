"""Project endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException

from src.construction import UNSET
from src.status_engine import ProjectStatus

from ..dependencies import (
    get_construction_service,
    iso_or_none,
    run_service,
    serialize_cascade,
    serialize_project,
    serialize_step,
)
from ..schemas import (
    DeleteResponse,
    ProjectCreateRequest,
    ProjectRecomputeResponse,
    ProjectResponse,
    ProjectStatsResponse,
    ProjectUpdateRequest,
    StatusExplanationResponse,
    StepResponse,
)

logger = logging.getLogger(__name__)


def register_project_routes(app: FastAPI) -> None:
    """Register project CRUD and status endpoints."""

    @app.get("/api/projects", response_model=List[ProjectResponse])
    async def list_projects(status: Optional[ProjectStatus] = None) -> List[ProjectResponse]:
        """List projects, newest first."""
        service = get_construction_service()
        projects = await run_service("Failed to list projects", service.repository.list_projects, status)
        return [serialize_project(p) for p in projects]

    @app.get("/api/projects/stats", response_model=ProjectStatsResponse)
    async def project_stats() -> ProjectStatsResponse:
        """Dashboard counters per status."""
        service = get_construction_service()
        stats = await run_service("Failed to compute project stats", service.project_stats)
        return ProjectStatsResponse(**stats)

    @app.post("/api/projects", response_model=ProjectResponse)
    async def create_project(request: ProjectCreateRequest) -> ProjectResponse:
        """Create a new project."""
        service = get_construction_service()
        project = await run_service(
            "Failed to create project",
            service.repository.create_project,
            request.title,
            request.description,
            request.status,
            request.budget,
            iso_or_none(request.start_date),
            iso_or_none(request.end_date),
        )
        return serialize_project(project)

    @app.get("/api/projects/{project_id}", response_model=ProjectResponse)
    async def get_project(project_id: int) -> ProjectResponse:
        service = get_construction_service()
        project = await run_service("Failed to fetch project", service.get_project, project_id)
        return serialize_project(project)

    @app.patch("/api/projects/{project_id}", response_model=ProjectResponse)
    async def update_project(project_id: int, request: ProjectUpdateRequest) -> ProjectResponse:
        """Update a project. A status given here is stored as a manual override."""
        service = get_construction_service()
        payload = request.model_dump(exclude_unset=True)
        project = await run_service(
            "Failed to update project",
            service.update_project,
            project_id,
            title=payload.get("title"),
            description=payload.get("description"),
            status=payload.get("status"),
            budget=payload["budget"] if "budget" in payload else UNSET,
            start_date=iso_or_none(payload["start_date"]) if "start_date" in payload else UNSET,
            end_date=iso_or_none(payload["end_date"]) if "end_date" in payload else UNSET,
        )
        return serialize_project(project)

    @app.delete("/api/projects/{project_id}", response_model=DeleteResponse)
    async def delete_project(project_id: int) -> DeleteResponse:
        """Delete a project with its steps and tasks."""
        service = get_construction_service()
        deleted = await run_service(
            "Failed to delete project", service.repository.delete_project, project_id
        )
        if not deleted:
            raise HTTPException(status_code=404, detail="Project not found")
        logger.info("Deleted project %s with its steps and tasks", project_id)
        return DeleteResponse(deleted=True)

    @app.get("/api/projects/{project_id}/steps", response_model=List[StepResponse])
    async def list_project_steps(project_id: int) -> List[StepResponse]:
        service = get_construction_service()
        steps = await run_service("Failed to list steps", service.list_steps, project_id)
        return [serialize_step(s) for s in steps]

    @app.get("/api/projects/{project_id}/automatic-status", response_model=StatusExplanationResponse)
    async def automatic_status(project_id: int) -> StatusExplanationResponse:
        """Preview the status the current steps derive to, without writing it."""
        service = get_construction_service()
        project = await run_service("Failed to fetch project", service.get_project, project_id)
        explanation = await run_service(
            "Failed to derive project status", service.explain_project_status, project_id
        )
        return StatusExplanationResponse(
            current_status=project.status.value,
            automatic_status=explanation.status,
            rule=explanation.rule,
            reason=explanation.reason,
        )

    @app.post("/api/projects/{project_id}/recompute-status", response_model=ProjectRecomputeResponse)
    async def recompute_status(project_id: int, force: bool = False) -> ProjectRecomputeResponse:
        """Re-derive every step and the project; ``force`` also overwrites a CANCELLED project."""
        service = get_construction_service()
        project, result = await run_service(
            "Failed to recompute project status", service.recompute_project, project_id, force
        )
        logger.info(
            "Recomputed project %s (force=%s): %d status writes", project_id, force, result.writes
        )
        return ProjectRecomputeResponse(
            project=serialize_project(project), cascade=serialize_cascade(result)
        )
