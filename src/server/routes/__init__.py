"""Route registration helpers."""

from .health import register_health_routes
from .projects import register_project_routes
from .steps import register_step_routes
from .tasks import register_task_routes
from .templates import register_template_routes

__all__ = [
    "register_health_routes",
    "register_project_routes",
    "register_step_routes",
    "register_task_routes",
    "register_template_routes",
]
