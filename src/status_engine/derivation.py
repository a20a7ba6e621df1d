"""ステータス導出ルール

タスク群 → 工程、工程群 → プロジェクトのステータスを純粋関数で導出する。
規則は上から順に評価し、最初に一致したものを採用する。

Design Reference: DESIGN.md (status_engine.derivation)
Related Classes: StatusCascade (cascade.py)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .statuses import ProjectStatus, StepStatus, TaskStatus

S = TypeVar("S")
R = TypeVar("R")


@dataclass(frozen=True)
class Rule(Generic[S, R]):
    """導出規則1件"""

    name: str
    applies: Callable[[Sequence[S]], bool]
    result: R
    reason: str


@dataclass(frozen=True)
class StatusExplanation:
    """導出結果と、適用された規則の説明"""

    status: Optional[str]
    rule: str
    reason: str


def _every(*targets) -> Callable[[Sequence], bool]:
    return lambda statuses: all(s in targets for s in statuses)


def _some(*targets) -> Callable[[Sequence], bool]:
    return lambda statuses: any(s in targets for s in statuses)


def _always(statuses: Sequence) -> bool:
    return True


STEP_RULES: Tuple[Rule[TaskStatus, StepStatus], ...] = (
    Rule("all_done", _every(TaskStatus.DONE), StepStatus.COMPLETED,
         "All tasks are done"),
    Rule("any_blocked", _some(TaskStatus.BLOCKED), StepStatus.BLOCKED,
         "At least one task is blocked"),
    Rule("any_suspended", _some(TaskStatus.SUSPENDED), StepStatus.SUSPENDED,
         "At least one task is suspended"),
    Rule("any_active", _some(TaskStatus.IN_PROGRESS, TaskStatus.REVIEW), StepStatus.IN_PROGRESS,
         "At least one task is in progress or in review"),
    Rule("all_todo", _every(TaskStatus.TODO), StepStatus.PENDING,
         "All tasks are still to do"),
    Rule("fallback", _always, StepStatus.PENDING,
         "Default status"),
)

PROJECT_RULES: Tuple[Rule[StepStatus, ProjectStatus], ...] = (
    Rule("all_completed", _every(StepStatus.COMPLETED), ProjectStatus.COMPLETED,
         "All steps are completed"),
    Rule("any_halted", _some(StepStatus.BLOCKED, StepStatus.SUSPENDED), ProjectStatus.SUSPENDED,
         "At least one step is blocked or suspended"),
    Rule("any_in_progress", _some(StepStatus.IN_PROGRESS), ProjectStatus.IN_PROGRESS,
         "At least one step is in progress"),
    Rule("all_pending", _every(StepStatus.PENDING), ProjectStatus.DRAFT,
         "All steps are pending"),
    Rule("fallback", _always, ProjectStatus.DRAFT,
         "Default status"),
)


def _first_match(rules: Sequence[Rule[S, R]], statuses: List[S]) -> Rule[S, R]:
    for rule in rules:
        if rule.applies(statuses):
            return rule
    # fallback は常に一致する
    raise AssertionError("rule table has no fallback")


def _coerce(enum_type, statuses: Iterable) -> list:
    return [enum_type(s) for s in statuses]


def derive_step_status(task_statuses: Iterable[TaskStatus]) -> StepStatus:
    """タスクのステータス群から工程ステータスを導出する

    Args:
        task_statuses: 1件以上のタスクステータス（順序は問わない）

    Returns:
        導出された工程ステータス

    Raises:
        ValueError: 空の場合、または未知のステータス値を含む場合
    """
    statuses = _coerce(TaskStatus, task_statuses)
    if not statuses:
        raise ValueError("derive_step_status requires at least one task status")
    return _first_match(STEP_RULES, statuses).result


def derive_project_status(step_statuses: Iterable[StepStatus]) -> ProjectStatus:
    """工程のステータス群からプロジェクトステータスを導出する

    CANCELLED は決して返さない（手動設定専用の終端ステータス）。

    Raises:
        ValueError: 空の場合、または未知のステータス値を含む場合
    """
    statuses = _coerce(StepStatus, step_statuses)
    if not statuses:
        raise ValueError("derive_project_status requires at least one step status")
    return _first_match(PROJECT_RULES, statuses).result


def explain_step_status(task_statuses: Iterable[TaskStatus]) -> StatusExplanation:
    """導出結果と理由を返す（書き込みなしのプレビュー用）"""
    statuses = _coerce(TaskStatus, task_statuses)
    if not statuses:
        return StatusExplanation(status=None, rule="no_tasks", reason="No tasks defined")
    rule = _first_match(STEP_RULES, statuses)
    return StatusExplanation(status=rule.result.value, rule=rule.name, reason=rule.reason)


def explain_project_status(step_statuses: Iterable[StepStatus]) -> StatusExplanation:
    """導出結果と理由を返す（書き込みなしのプレビュー用）"""
    statuses = _coerce(StepStatus, step_statuses)
    if not statuses:
        return StatusExplanation(status=None, rule="no_steps", reason="No steps defined")
    rule = _first_match(PROJECT_RULES, statuses)
    return StatusExplanation(status=rule.result.value, rule=rule.name, reason=rule.reason)
