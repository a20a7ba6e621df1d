"""Status Propagation Engine

タスク → 工程 → プロジェクト のステータス導出とカスケード。

Design Reference: DESIGN.md
"""

from .cascade import CascadeResult, ManualStatusPolicy, StatusCascade, StatusChange
from .derivation import (
    StatusExplanation,
    derive_project_status,
    derive_step_status,
    explain_project_status,
    explain_step_status,
)
from .exceptions import (
    ConfigurationError,
    EntityNotFoundError,
    StatusEngineError,
    StatusPersistenceError,
)
from .ports import StatusStore
from .statuses import (
    TERMINAL_PROJECT_STATUSES,
    ProjectStatus,
    StatusRecord,
    StepStatus,
    TaskStatus,
)

__all__ = [
    "CascadeResult",
    "ConfigurationError",
    "EntityNotFoundError",
    "ManualStatusPolicy",
    "ProjectStatus",
    "StatusCascade",
    "StatusChange",
    "StatusEngineError",
    "StatusExplanation",
    "StatusPersistenceError",
    "StatusRecord",
    "StatusStore",
    "StepStatus",
    "TERMINAL_PROJECT_STATUSES",
    "TaskStatus",
    "derive_project_status",
    "derive_step_status",
    "explain_project_status",
    "explain_step_status",
]
