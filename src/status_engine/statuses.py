"""ステータス列挙型と兄弟ステータスの読み取り用レコード"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class TaskStatus(str, Enum):
    """タスクのステータス。ユーザー操作で直接設定される。"""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"
    SUSPENDED = "SUSPENDED"


class StepStatus(str, Enum):
    """工程のステータス。配下タスクから導出される。"""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"
    SUSPENDED = "SUSPENDED"


class ProjectStatus(str, Enum):
    """プロジェクトのステータス。配下工程から導出される。"""

    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"


# 導出規則が決して生成しない、手動設定でのみ到達するステータス
TERMINAL_PROJECT_STATUSES = frozenset({ProjectStatus.CANCELLED})

AnyStatus = Union[TaskStatus, StepStatus, ProjectStatus]


@dataclass(frozen=True, slots=True)
class StatusRecord:
    """兄弟エンティティの ``{id, status}`` だけを表す読み取り専用レコード"""

    id: int
    status: AnyStatus
