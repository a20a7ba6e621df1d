"""Construction project management: projects, steps, tasks and templates."""

from .models import Priority, Project, ProjectStep, ProjectTemplate, Task, TemplateStep, TemplateTask
from .repository import UNSET, ConstructionRepository
from .service import ConstructionService, build_service
from .templates import TemplateRepository

__all__ = [
    "ConstructionRepository",
    "ConstructionService",
    "Priority",
    "Project",
    "ProjectStep",
    "ProjectTemplate",
    "Task",
    "TemplateRepository",
    "TemplateStep",
    "TemplateTask",
    "UNSET",
    "build_service",
]
