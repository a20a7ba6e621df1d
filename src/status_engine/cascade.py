"""ステータスカスケード

タスク変更 → 工程ステータス再計算 → プロジェクトステータス再計算 の
2段階の伝播を行う。書き込みは値が変わった場合のみ。
ベストエフォートであり、途中で失敗しても既に書いた値は戻さない。

Design Reference: DESIGN.md (status_engine.cascade)
Related Classes: StatusStore (ports.py), derive_* (derivation.py)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .derivation import derive_project_status, derive_step_status
from .exceptions import ConfigurationError, StatusEngineError, StatusPersistenceError
from .ports import StatusStore
from .statuses import TERMINAL_PROJECT_STATUSES, ProjectStatus, StepStatus

logger = logging.getLogger(__name__)


class ManualStatusPolicy(str, Enum):
    """手動設定ステータスをカスケードが上書きするかどうか"""

    # CANCELLED などの終端ステータスは自動カスケードで上書きしない
    PRESERVE_TERMINAL = "preserve_terminal"
    # 常に導出結果で上書きする
    ALWAYS_DERIVE = "always_derive"

    @classmethod
    def parse(cls, value: str) -> "ManualStatusPolicy":
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(p.value for p in cls)
            raise ConfigurationError(
                f"Unknown manual status policy: {value!r} (expected one of: {allowed})"
            ) from exc


@dataclass(frozen=True)
class StatusChange:
    """永続化されたステータス変更1件"""

    entity: str  # "step" | "project"
    entity_id: int
    old: str
    new: str

    def to_dict(self) -> Dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id, "old": self.old, "new": self.new}


@dataclass
class CascadeResult:
    """1回のカスケードで行われた書き込み"""

    changes: List[StatusChange] = field(default_factory=list)
    preserved_project_id: Optional[int] = None

    @property
    def writes(self) -> int:
        return len(self.changes)

    @property
    def step_changes(self) -> List[StatusChange]:
        return [c for c in self.changes if c.entity == "step"]

    @property
    def project_change(self) -> Optional[StatusChange]:
        for change in self.changes:
            if change.entity == "project":
                return change
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "preserved_project_id": self.preserved_project_id,
        }


class StatusCascade:
    """タスク → 工程 → プロジェクト のステータス伝播を行うクラス"""

    def __init__(
        self,
        store: StatusStore,
        policy: ManualStatusPolicy = ManualStatusPolicy.PRESERVE_TERMINAL,
    ) -> None:
        """
        初期化

        Args:
            store: 兄弟ステータスの読み書きポート
            policy: 手動設定ステータスの扱い
        """
        self.store = store
        self.policy = policy

    def on_task_status_changed(self, task_id: int) -> CascadeResult:
        """タスクのステータス更新後に呼ぶ"""
        step_id = self.store.step_id_for_task(task_id)
        return self.on_step_tasks_changed(step_id)

    def on_step_tasks_changed(self, step_id: int) -> CascadeResult:
        """工程配下のタスクが作成・削除・更新された後に呼ぶ"""
        result = CascadeResult()
        self._refresh_step(step_id, result)
        project_id = self.store.project_id_for_step(step_id)
        self._refresh_project(project_id, result, force=False)
        return result

    def on_step_status_changed(self, step_id: int) -> CascadeResult:
        """工程ステータスの手動更新後に呼ぶ（プロジェクト側のみ再計算）"""
        project_id = self.store.project_id_for_step(step_id)
        return self.on_project_steps_changed(project_id)

    def on_project_steps_changed(self, project_id: int) -> CascadeResult:
        """工程の作成・削除後に呼ぶ（プロジェクト側のみ再計算）"""
        result = CascadeResult()
        self._refresh_project(project_id, result, force=False)
        return result

    def recompute_project(self, project_id: int, force: bool = False) -> CascadeResult:
        """全工程とプロジェクトを明示的に再導出する

        Args:
            project_id: 対象プロジェクト
            force: True の場合、終端ステータスも上書きする
        """
        result = CascadeResult()
        for record in self.store.list_step_statuses(project_id):
            self._refresh_step(record.id, result)
        self._refresh_project(project_id, result, force=force)
        return result

    def _refresh_step(self, step_id: int, result: CascadeResult) -> None:
        records = self.store.list_task_statuses(step_id)
        if not records:
            logger.debug("Step %s has no tasks; status left unchanged", step_id)
            return

        derived = derive_step_status(r.status for r in records)
        current = StepStatus(self.store.get_step_status(step_id))
        if current == derived:
            return

        try:
            self.store.set_step_status(step_id, derived)
        except StatusEngineError:
            raise
        except Exception as exc:
            logger.exception("Failed to persist status of step %s", step_id)
            raise StatusPersistenceError(
                f"Failed to persist status {derived.value} on step {step_id}", result
            ) from exc

        result.changes.append(StatusChange("step", step_id, current.value, derived.value))
        logger.info("Step %s status: %s -> %s", step_id, current.value, derived.value)

    def _refresh_project(self, project_id: int, result: CascadeResult, force: bool) -> None:
        records = self.store.list_step_statuses(project_id)
        if not records:
            logger.debug("Project %s has no steps; status left unchanged", project_id)
            return

        current = ProjectStatus(self.store.get_project_status(project_id))
        if (
            not force
            and self.policy is ManualStatusPolicy.PRESERVE_TERMINAL
            and current in TERMINAL_PROJECT_STATUSES
        ):
            logger.debug("Project %s is %s; preserved by policy", project_id, current.value)
            result.preserved_project_id = project_id
            return

        derived = derive_project_status(r.status for r in records)
        if current == derived:
            return

        try:
            self.store.set_project_status(project_id, derived)
        except StatusEngineError:
            raise
        except Exception as exc:
            logger.exception("Failed to persist status of project %s", project_id)
            raise StatusPersistenceError(
                f"Failed to persist status {derived.value} on project {project_id}", result
            ) from exc

        result.changes.append(StatusChange("project", project_id, current.value, derived.value))
        logger.info("Project %s status: %s -> %s", project_id, current.value, derived.value)
