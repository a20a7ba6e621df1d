"""Dependency helpers shared across FastAPI routes."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from functools import lru_cache
from typing import Any, Callable, Optional, TypeVar

from fastapi import HTTPException

from src.construction import ConstructionService, Project, ProjectStep, ProjectTemplate, Task, build_service
from src.sitebook import Config, setup_logger
from src.status_engine import CascadeResult, EntityNotFoundError, StatusPersistenceError

from .schemas import (
    CascadeChangeResponse,
    CascadeResponse,
    ProjectResponse,
    StepResponse,
    TaskResponse,
    TemplateResponse,
    TemplateStepResponse,
    TemplateTaskResponse,
)

config = Config.load()
setup_logger(log_level=config.log_level, log_file=config.log_file)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@lru_cache(maxsize=1)
def get_construction_service() -> ConstructionService:
    """Singleton ConstructionService sharing one database."""
    return build_service(db_path=config.database_path, policy=config.manual_policy)


async def run_service(failure_detail: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking service call in a worker thread and map domain errors to HTTP errors."""
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StatusPersistenceError as exc:
        logger.exception("%s: %s", failure_detail, exc)
        raise HTTPException(status_code=500, detail=f"{failure_detail}: {exc}") from exc
    except Exception as exc:
        logger.exception("%s: %s", failure_detail, exc)
        raise HTTPException(status_code=500, detail=failure_detail) from exc


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def serialize_cascade(result: CascadeResult) -> CascadeResponse:
    """Convert a CascadeResult to API response."""
    return CascadeResponse(
        changes=[
            CascadeChangeResponse(entity=c.entity, id=c.entity_id, old=c.old, new=c.new)
            for c in result.changes
        ],
        preserved_project_id=result.preserved_project_id,
    )


def serialize_project(project: Project) -> ProjectResponse:
    """Convert domain Project to API response."""
    return ProjectResponse(
        id=project.id,
        title=project.title,
        description=project.description,
        status=project.status,
        budget=project.budget,
        start_date=_parse_date(project.start_date),
        end_date=_parse_date(project.end_date),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def serialize_step(step: ProjectStep) -> StepResponse:
    """Convert domain ProjectStep to API response."""
    return StepResponse(
        id=step.id,
        project_id=step.project_id,
        title=step.title,
        description=step.description,
        order=step.order,
        status=step.status,
        is_custom=step.is_custom,
        created_at=step.created_at,
        updated_at=step.updated_at,
    )


def serialize_task(task: Task) -> TaskResponse:
    """Convert domain Task to API response."""
    return TaskResponse(
        id=task.id,
        step_id=task.step_id,
        title=task.title,
        description=task.description,
        order=task.order,
        status=task.status,
        priority=task.priority,
        due_date=_parse_date(task.due_date),
        created_by=task.created_by,
        assigned_to=task.assigned_to,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def serialize_template(template: ProjectTemplate) -> TemplateResponse:
    """Convert domain ProjectTemplate to API response."""
    return TemplateResponse(
        id=template.id,
        title=template.title,
        description=template.description,
        created_at=template.created_at,
        updated_at=template.updated_at,
        steps=[
            TemplateStepResponse(
                id=step.id,
                title=step.title,
                description=step.description,
                order=step.order,
                tasks=[
                    TemplateTaskResponse(
                        id=task.id, title=task.title, description=task.description, order=task.order
                    )
                    for task in step.tasks
                ],
            )
            for step in template.steps
        ],
    )


def iso_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
