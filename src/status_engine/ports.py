"""カスケードが必要とする永続化ポート

エンジンはこのインターフェースだけに依存し、ストレージ技術は問わない。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .statuses import ProjectStatus, StatusRecord, StepStatus


class StatusStore(ABC):
    """兄弟ステータスの読み取りと親ステータスの書き込みを提供する抽象基底クラス

    存在しないIDを渡された場合は EntityNotFoundError を送出すること。
    """

    @abstractmethod
    def step_id_for_task(self, task_id: int) -> int:
        """タスクを所有する工程のID"""

    @abstractmethod
    def project_id_for_step(self, step_id: int) -> int:
        """工程を所有するプロジェクトのID"""

    @abstractmethod
    def get_step_status(self, step_id: int) -> StepStatus:
        pass

    @abstractmethod
    def get_project_status(self, project_id: int) -> ProjectStatus:
        pass

    @abstractmethod
    def list_task_statuses(self, step_id: int) -> List[StatusRecord]:
        """工程配下の全タスクの ``{id, status}``"""

    @abstractmethod
    def list_step_statuses(self, project_id: int) -> List[StatusRecord]:
        """プロジェクト配下の全工程の ``{id, status}``"""

    @abstractmethod
    def set_step_status(self, step_id: int, status: StepStatus) -> None:
        pass

    @abstractmethod
    def set_project_status(self, project_id: int, status: ProjectStatus) -> None:
        pass
