"""Project step endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI

from ..dependencies import (
    get_construction_service,
    run_service,
    serialize_cascade,
    serialize_step,
)
from ..schemas import (
    DeleteResponse,
    StatusExplanationResponse,
    StepCreateRequest,
    StepMutationResponse,
    StepResponse,
    StepUpdateRequest,
)

logger = logging.getLogger(__name__)


def register_step_routes(app: FastAPI) -> None:
    """Register project step CRUD endpoints."""

    @app.post("/api/project-steps", response_model=StepMutationResponse)
    async def create_step(request: StepCreateRequest) -> StepMutationResponse:
        """Create a step; the project status is re-derived with the new step included."""
        service = get_construction_service()
        step, result = await run_service(
            "Failed to create step",
            service.create_step,
            request.project_id,
            request.title,
            request.description,
            request.order,
            request.status,
            request.is_custom,
        )
        return StepMutationResponse(step=serialize_step(step), cascade=serialize_cascade(result))

    @app.get("/api/project-steps/project/{project_id}", response_model=List[StepResponse])
    async def list_steps(project_id: int) -> List[StepResponse]:
        """List the steps of a project in order."""
        service = get_construction_service()
        steps = await run_service("Failed to list steps", service.list_steps, project_id)
        return [serialize_step(s) for s in steps]

    @app.get("/api/project-steps/{step_id}", response_model=StepResponse)
    async def get_step(step_id: int) -> StepResponse:
        service = get_construction_service()
        step = await run_service("Failed to fetch step", service.get_step, step_id)
        return serialize_step(step)

    @app.get("/api/project-steps/{step_id}/automatic-status", response_model=StatusExplanationResponse)
    async def automatic_status(step_id: int) -> StatusExplanationResponse:
        """Preview the status the current tasks derive to, without writing it."""
        service = get_construction_service()
        step = await run_service("Failed to fetch step", service.get_step, step_id)
        explanation = await run_service(
            "Failed to derive step status", service.explain_step_status, step_id
        )
        return StatusExplanationResponse(
            current_status=step.status.value,
            automatic_status=explanation.status,
            rule=explanation.rule,
            reason=explanation.reason,
        )

    @app.patch("/api/project-steps/{step_id}", response_model=StepMutationResponse)
    async def update_step(step_id: int, request: StepUpdateRequest) -> StepMutationResponse:
        """Update a step. A manual status re-derives the owning project."""
        service = get_construction_service()
        payload = request.model_dump(exclude_unset=True)
        step, result = await run_service(
            "Failed to update step",
            service.update_step,
            step_id,
            title=payload.get("title"),
            description=payload.get("description"),
            order=payload.get("order"),
            status=payload.get("status"),
            is_custom=payload.get("is_custom"),
        )
        return StepMutationResponse(step=serialize_step(step), cascade=serialize_cascade(result))

    @app.delete("/api/project-steps/{step_id}", response_model=DeleteResponse)
    async def delete_step(step_id: int) -> DeleteResponse:
        """Delete a step with its tasks; the project status is re-derived."""
        service = get_construction_service()
        result = await run_service("Failed to delete step", service.delete_step, step_id)
        logger.info("Deleted step %s", step_id)
        return DeleteResponse(deleted=True, cascade=serialize_cascade(result))
