"""Construction service

リポジトリとステータスカスケードを結線するアプリケーションサービス。
タスク・工程の変更はすべてここを通り、同じカスケードが呼ばれる。

Design Reference: DESIGN.md (construction.service)
Related Classes: ConstructionRepository, TemplateRepository, StatusCascade
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.status_engine import (
    CascadeResult,
    EntityNotFoundError,
    ManualStatusPolicy,
    StatusCascade,
    StatusExplanation,
    StepStatus,
    TaskStatus,
    explain_project_status,
    explain_step_status,
)

from .models import Priority, Project, ProjectStep, ProjectTemplate, Task, TemplateStep
from .repository import ConstructionRepository
from .templates import TemplateRepository

logger = logging.getLogger(__name__)


class ConstructionService:
    """プロジェクト・工程・タスク操作とステータス伝播の窓口"""

    def __init__(
        self,
        repository: ConstructionRepository,
        templates: TemplateRepository,
        cascade: StatusCascade,
    ) -> None:
        self.repository = repository
        self.templates = templates
        self.cascade = cascade

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_project(self, project_id: int) -> Project:
        project = self.repository.get_project(project_id)
        if project is None:
            raise EntityNotFoundError("Project", project_id)
        return project

    def get_step(self, step_id: int) -> ProjectStep:
        step = self.repository.get_step(step_id)
        if step is None:
            raise EntityNotFoundError("Step", step_id)
        return step

    def get_task(self, task_id: int) -> Task:
        task = self.repository.get_task(task_id)
        if task is None:
            raise EntityNotFoundError("Task", task_id)
        return task

    def list_steps(self, project_id: int) -> List[ProjectStep]:
        self.get_project(project_id)
        return self.repository.list_steps(project_id)

    def list_tasks(self, step_id: int) -> List[Task]:
        self.get_step(step_id)
        return self.repository.list_tasks(step_id)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    def update_project(self, project_id: int, **changes: Any) -> Project:
        """プロジェクトを更新する。status は手動設定としてそのまま保存する。"""
        project = self.repository.update_project(project_id, **changes)
        if project is None:
            raise EntityNotFoundError("Project", project_id)
        if "status" in changes and changes["status"] is not None:
            logger.info("Project %s status set manually to %s", project_id, project.status.value)
        return project

    def explain_project_status(self, project_id: int) -> StatusExplanation:
        """現在の工程から導出されるステータスと理由（書き込みなし）"""
        self.get_project(project_id)
        records = self.repository.list_step_statuses(project_id)
        return explain_project_status(r.status for r in records)

    def explain_step_status(self, step_id: int) -> StatusExplanation:
        self.get_step(step_id)
        records = self.repository.list_task_statuses(step_id)
        return explain_step_status(r.status for r in records)

    def recompute_project(self, project_id: int, force: bool = False) -> Tuple[Project, CascadeResult]:
        """工程とプロジェクトのステータスを明示的に再導出する"""
        self.get_project(project_id)
        result = self.cascade.recompute_project(project_id, force=force)
        return self.get_project(project_id), result

    def project_stats(self) -> Dict[str, Any]:
        return self.repository.project_stats()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def create_step(
        self,
        project_id: int,
        title: str,
        description: str = "",
        order: int = 0,
        status: StepStatus = StepStatus.PENDING,
        is_custom: bool = False,
    ) -> Tuple[ProjectStep, CascadeResult]:
        step = self.repository.create_step(
            project_id,
            title,
            description=description,
            order=order,
            status=status,
            is_custom=is_custom,
        )
        result = self.cascade.on_project_steps_changed(project_id)
        return step, result

    def update_step(self, step_id: int, **changes: Any) -> Tuple[ProjectStep, CascadeResult]:
        """工程を更新する。status を含む場合はプロジェクト側を再計算する。"""
        step = self.repository.update_step(step_id, **changes)
        if step is None:
            raise EntityNotFoundError("Step", step_id)

        result = CascadeResult()
        if changes.get("status") is not None:
            result = self.cascade.on_step_status_changed(step_id)
        return step, result

    def delete_step(self, step_id: int) -> CascadeResult:
        step = self.get_step(step_id)
        self.repository.delete_step(step_id)
        return self.cascade.on_project_steps_changed(step.project_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def create_task(
        self,
        step_id: int,
        title: str,
        created_by: str,
        description: str = "",
        order: int = 0,
        status: TaskStatus = TaskStatus.TODO,
        priority: Priority = Priority.MEDIUM,
        due_date: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> Tuple[Task, CascadeResult]:
        """タスクを作成し、工程とプロジェクトのステータスを再計算する

        Args:
            created_by: 作成者ID。呼び出し側（HTTP層）が解決して渡す。
        """
        if not created_by:
            raise ValueError("created_by is required")
        task = self.repository.create_task(
            step_id,
            title,
            created_by,
            description=description,
            order=order,
            status=status,
            priority=priority,
            due_date=due_date,
            assigned_to=assigned_to,
        )
        result = self.cascade.on_step_tasks_changed(step_id)
        return task, result

    def update_task(self, task_id: int, **changes: Any) -> Tuple[Task, CascadeResult]:
        """タスクを更新する。status を含む場合はカスケードを実行する。"""
        task = self.repository.update_task(task_id, **changes)
        if task is None:
            raise EntityNotFoundError("Task", task_id)

        result = CascadeResult()
        if changes.get("status") is not None:
            result = self.cascade.on_task_status_changed(task_id)
        return task, result

    def set_task_status(self, task_id: int, status: TaskStatus) -> Tuple[Task, CascadeResult]:
        return self.update_task(task_id, status=status)

    def delete_task(self, task_id: int) -> CascadeResult:
        task = self.get_task(task_id)
        self.repository.delete_task(task_id)
        return self.cascade.on_step_tasks_changed(task.step_id)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def create_template(
        self, title: str, description: str = "", steps: Iterable[dict] = ()
    ) -> ProjectTemplate:
        """テンプレートを作成する。steps は {title, description, order, tasks} の辞書。"""
        template = self.templates.create_template(title, description)
        for index, step in enumerate(steps):
            self.templates.add_step(
                template.id,
                step["title"],
                description=step.get("description", ""),
                order=step.get("order", index),
                tasks=step.get("tasks", ()),
            )
        return self.get_template(template.id)

    def get_template(self, template_id: int) -> ProjectTemplate:
        template = self.templates.get_template(template_id)
        if template is None:
            raise EntityNotFoundError("Template", template_id)
        return template

    def list_templates(self) -> List[ProjectTemplate]:
        return self.templates.list_templates()

    def update_template(self, template_id: int, **changes: Any) -> ProjectTemplate:
        template = self.templates.update_template(template_id, **changes)
        if template is None:
            raise EntityNotFoundError("Template", template_id)
        return template

    def delete_template(self, template_id: int) -> None:
        if not self.templates.delete_template(template_id):
            raise EntityNotFoundError("Template", template_id)

    def update_template_step(self, template_id: int, step_id: int, **changes: Any) -> TemplateStep:
        """テンプレート工程を更新する。配下タスクは変更しない。"""
        return self.templates.update_step(template_id, step_id, **changes)

    def remove_template_step(self, template_id: int, step_id: int) -> None:
        self.templates.remove_step(template_id, step_id)

    def add_template_step(
        self,
        template_id: int,
        title: str,
        description: str = "",
        order: int = 0,
        tasks: Iterable[dict] = (),
    ) -> TemplateStep:
        return self.templates.add_step(
            template_id, title, description=description, order=order, tasks=tasks
        )

    def apply_template(
        self, template_id: int, project_id: int, actor_id: str
    ) -> Tuple[List[ProjectStep], CascadeResult]:
        """テンプレートでプロジェクトの工程を置き換える

        Args:
            actor_id: 生成されるタスクの作成者ID
        """
        if not actor_id:
            raise ValueError("actor_id is required")
        template = self.get_template(template_id)

        steps = self.repository.replace_steps(project_id, template, actor_id)
        logger.info(
            "Applied template %s to project %s (%d steps)", template_id, project_id, len(steps)
        )
        result = self.cascade.on_project_steps_changed(project_id)
        return steps, result


def build_service(
    db_path: Optional[Path] = None,
    policy: ManualStatusPolicy = ManualStatusPolicy.PRESERVE_TERMINAL,
) -> ConstructionService:
    """同じDBを共有するリポジトリ群とカスケードを組み立てる"""
    repository = ConstructionRepository(db_path=db_path)
    templates = TemplateRepository(db_path=repository.db_path)
    cascade = StatusCascade(repository, policy=policy)
    return ConstructionService(repository, templates, cascade)


