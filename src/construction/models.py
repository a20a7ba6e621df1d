from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.status_engine import ProjectStatus, StepStatus, TaskStatus


class Priority(str, Enum):
    """タスクの優先度"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


@dataclass(slots=True)
class Project:
    """永続化済みプロジェクトの表現"""

    id: int
    title: str
    description: str
    status: ProjectStatus
    budget: Optional[float]
    start_date: Optional[str]
    end_date: Optional[str]
    created_at: str
    updated_at: str


@dataclass(slots=True)
class ProjectStep:
    """プロジェクトの工程。ステータスは配下タスクから導出される。"""

    id: int
    project_id: int
    title: str
    description: str
    order: int
    status: StepStatus
    is_custom: bool
    created_at: str
    updated_at: str


@dataclass(slots=True)
class Task:
    """工程配下のタスク"""

    id: int
    step_id: int
    title: str
    description: str
    order: int
    status: TaskStatus
    priority: Priority
    due_date: Optional[str]
    created_by: str
    assigned_to: Optional[str]
    created_at: str
    updated_at: str


@dataclass(slots=True)
class TemplateTask:
    id: int
    step_id: int
    title: str
    description: str
    order: int


@dataclass(slots=True)
class TemplateStep:
    id: int
    template_id: int
    title: str
    description: str
    order: int
    tasks: List[TemplateTask] = field(default_factory=list)


@dataclass(slots=True)
class ProjectTemplate:
    """工程とタスクの雛形"""

    id: int
    title: str
    description: str
    created_at: str
    updated_at: str
    steps: List[TemplateStep] = field(default_factory=list)
