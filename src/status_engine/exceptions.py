"""ステータス伝播エンジンのカスタム例外定義

Design Reference: DESIGN.md (status_engine)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .cascade import CascadeResult


class StatusEngineError(Exception):
    """ステータスエンジン基底例外"""

    pass


class EntityNotFoundError(StatusEngineError):
    """プロジェクト・工程・タスク・テンプレートが存在しない"""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} with ID {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StatusPersistenceError(StatusEngineError):
    """カスケード中のステータス書き込みに失敗

    既に適用済みの書き込みはロールバックしない。
    ``result`` には失敗前までに書き込まれた変更が入る。
    """

    def __init__(self, message: str, result: Optional["CascadeResult"] = None) -> None:
        super().__init__(message)
        self.result = result


class ConfigurationError(StatusEngineError):
    """設定エラー"""

    pass
