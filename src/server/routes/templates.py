"""Project template endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI

from ..dependencies import (
    get_construction_service,
    run_service,
    serialize_cascade,
    serialize_step,
    serialize_template,
)
from ..schemas import (
    DeleteResponse,
    TemplateApplyRequest,
    TemplateApplyResponse,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateStepCreateRequest,
    TemplateStepResponse,
    TemplateStepUpdateRequest,
    TemplateUpdateRequest,
)

logger = logging.getLogger(__name__)


def _task_dicts(step: TemplateStepCreateRequest) -> List[dict]:
    return [task.model_dump(exclude_none=True) for task in step.tasks]


def _step_response(step) -> TemplateStepResponse:
    return TemplateStepResponse(
        id=step.id,
        title=step.title,
        description=step.description,
        order=step.order,
        tasks=[
            {"id": t.id, "title": t.title, "description": t.description, "order": t.order}
            for t in step.tasks
        ],
    )


def register_template_routes(app: FastAPI) -> None:
    """Register project template endpoints."""

    @app.get("/api/templates", response_model=List[TemplateResponse])
    async def list_templates() -> List[TemplateResponse]:
        service = get_construction_service()
        templates = await run_service("Failed to list templates", service.list_templates)
        return [serialize_template(t) for t in templates]

    @app.post("/api/templates", response_model=TemplateResponse)
    async def create_template(request: TemplateCreateRequest) -> TemplateResponse:
        """Create a template, optionally with its steps and tasks."""
        service = get_construction_service()
        steps = [
            {
                "title": step.title,
                "description": step.description,
                "order": step.order,
                "tasks": _task_dicts(step),
            }
            for step in request.steps
        ]
        template = await run_service(
            "Failed to create template",
            service.create_template,
            request.title,
            request.description,
            steps,
        )
        return serialize_template(template)

    @app.get("/api/templates/{template_id}", response_model=TemplateResponse)
    async def get_template(template_id: int) -> TemplateResponse:
        service = get_construction_service()
        template = await run_service("Failed to fetch template", service.get_template, template_id)
        return serialize_template(template)

    @app.patch("/api/templates/{template_id}", response_model=TemplateResponse)
    async def update_template(template_id: int, request: TemplateUpdateRequest) -> TemplateResponse:
        """Update a template's title or description."""
        service = get_construction_service()
        payload = request.model_dump(exclude_unset=True)
        template = await run_service(
            "Failed to update template",
            service.update_template,
            template_id,
            title=payload.get("title"),
            description=payload.get("description"),
        )
        return serialize_template(template)

    @app.delete("/api/templates/{template_id}", response_model=DeleteResponse)
    async def delete_template(template_id: int) -> DeleteResponse:
        service = get_construction_service()
        await run_service("Failed to delete template", service.delete_template, template_id)
        logger.info("Deleted template %s", template_id)
        return DeleteResponse(deleted=True)

    @app.post("/api/templates/{template_id}/steps", response_model=TemplateStepResponse)
    async def add_template_step(
        template_id: int, request: TemplateStepCreateRequest
    ) -> TemplateStepResponse:
        """Append a step (with optional tasks) to a template."""
        service = get_construction_service()
        step = await run_service(
            "Failed to add template step",
            service.add_template_step,
            template_id,
            request.title,
            request.description,
            request.order,
            _task_dicts(request),
        )
        return _step_response(step)

    @app.patch(
        "/api/templates/{template_id}/steps/{step_id}", response_model=TemplateStepResponse
    )
    async def update_template_step(
        template_id: int, step_id: int, request: TemplateStepUpdateRequest
    ) -> TemplateStepResponse:
        """Update a step of this template; 404 when the step belongs to another template."""
        service = get_construction_service()
        payload = request.model_dump(exclude_unset=True)
        step = await run_service(
            "Failed to update template step",
            service.update_template_step,
            template_id,
            step_id,
            title=payload.get("title"),
            description=payload.get("description"),
            order=payload.get("order"),
        )
        return _step_response(step)

    @app.delete("/api/templates/{template_id}/steps/{step_id}", response_model=DeleteResponse)
    async def remove_template_step(template_id: int, step_id: int) -> DeleteResponse:
        """Remove a step and its tasks from this template."""
        service = get_construction_service()
        await run_service(
            "Failed to remove template step", service.remove_template_step, template_id, step_id
        )
        logger.info("Removed step %s from template %s", step_id, template_id)
        return DeleteResponse(deleted=True)

    @app.post("/api/templates/{template_id}/apply", response_model=TemplateApplyResponse)
    async def apply_template(template_id: int, request: TemplateApplyRequest) -> TemplateApplyResponse:
        """Replace a project's steps and tasks with fresh copies of the template."""
        service = get_construction_service()
        steps, result = await run_service(
            "Failed to apply template",
            service.apply_template,
            template_id,
            request.project_id,
            request.actor_id,
        )
        return TemplateApplyResponse(
            steps=[serialize_step(s) for s in steps], cascade=serialize_cascade(result)
        )
