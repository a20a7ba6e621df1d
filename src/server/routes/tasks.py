"""Task endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI

from src.construction import UNSET

from ..dependencies import (
    get_construction_service,
    iso_or_none,
    run_service,
    serialize_cascade,
    serialize_task,
)
from ..schemas import (
    DeleteResponse,
    TaskCreateRequest,
    TaskMutationResponse,
    TaskResponse,
    TaskUpdateRequest,
)

logger = logging.getLogger(__name__)


def register_task_routes(app: FastAPI) -> None:
    """Register task CRUD endpoints."""

    @app.post("/api/tasks", response_model=TaskMutationResponse)
    async def create_task(request: TaskCreateRequest) -> TaskMutationResponse:
        """Create a task; the step and project statuses are re-derived."""
        service = get_construction_service()
        task, result = await run_service(
            "Failed to create task",
            service.create_task,
            request.step_id,
            request.title,
            request.created_by,
            description=request.description,
            order=request.order,
            status=request.status,
            priority=request.priority,
            due_date=iso_or_none(request.due_date),
            assigned_to=request.assigned_to,
        )
        return TaskMutationResponse(task=serialize_task(task), cascade=serialize_cascade(result))

    @app.get("/api/tasks/step/{step_id}", response_model=List[TaskResponse])
    async def list_tasks(step_id: int) -> List[TaskResponse]:
        """List the tasks of a step in order."""
        service = get_construction_service()
        tasks = await run_service("Failed to list tasks", service.list_tasks, step_id)
        return [serialize_task(t) for t in tasks]

    @app.get("/api/tasks/{task_id}", response_model=TaskResponse)
    async def get_task(task_id: int) -> TaskResponse:
        service = get_construction_service()
        task = await run_service("Failed to fetch task", service.get_task, task_id)
        return serialize_task(task)

    @app.patch("/api/tasks/{task_id}", response_model=TaskMutationResponse)
    async def update_task(task_id: int, request: TaskUpdateRequest) -> TaskMutationResponse:
        """Update a task. A status change cascades to the step and the project."""
        service = get_construction_service()
        payload = request.model_dump(exclude_unset=True)
        task, result = await run_service(
            "Failed to update task",
            service.update_task,
            task_id,
            title=payload.get("title"),
            description=payload.get("description"),
            order=payload.get("order"),
            status=payload.get("status"),
            priority=payload.get("priority"),
            due_date=iso_or_none(payload["due_date"]) if "due_date" in payload else UNSET,
            assigned_to=payload["assigned_to"] if "assigned_to" in payload else UNSET,
        )
        if result.preserved_project_id is not None:
            logger.info(
                "Task %s changed; project %s kept its terminal status",
                task_id,
                result.preserved_project_id,
            )
        return TaskMutationResponse(task=serialize_task(task), cascade=serialize_cascade(result))

    @app.delete("/api/tasks/{task_id}", response_model=DeleteResponse)
    async def delete_task(task_id: int) -> DeleteResponse:
        """Delete a task; the step and project statuses are re-derived."""
        service = get_construction_service()
        result = await run_service("Failed to delete task", service.delete_task, task_id)
        logger.info("Deleted task %s", task_id)
        return DeleteResponse(deleted=True, cascade=serialize_cascade(result))
