"""プロジェクトテンプレート

工程とタスクの雛形を保存し、プロジェクトへの適用に使う。

Design Reference: DESIGN.md (construction.templates)
Related Classes: ConstructionService.apply_template (service.py)
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from src.status_engine import EntityNotFoundError

from .models import ProjectTemplate, TemplateStep, TemplateTask
from .repository import resolve_db_path

SCHEMA = """
CREATE TABLE IF NOT EXISTS project_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS template_steps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    template_id INTEGER NOT NULL REFERENCES project_templates(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS template_tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    template_step_id INTEGER NOT NULL REFERENCES template_steps(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_template_steps ON template_steps(template_id);
"""


class TemplateRepository:
    """SQLiteベースのテンプレート管理"""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = resolve_db_path(db_path)
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _load_steps(self, conn: sqlite3.Connection, template_id: int) -> List[TemplateStep]:
        steps: List[TemplateStep] = []
        step_rows = conn.execute(
            "SELECT * FROM template_steps WHERE template_id = ? ORDER BY sort_order ASC, id ASC",
            (template_id,),
        ).fetchall()
        for row in step_rows:
            task_rows = conn.execute(
                "SELECT * FROM template_tasks WHERE template_step_id = ? ORDER BY sort_order ASC, id ASC",
                (row["id"],),
            ).fetchall()
            steps.append(
                TemplateStep(
                    id=row["id"],
                    template_id=row["template_id"],
                    title=row["title"],
                    description=row["description"] or "",
                    order=row["sort_order"],
                    tasks=[
                        TemplateTask(
                            id=t["id"],
                            step_id=t["template_step_id"],
                            title=t["title"],
                            description=t["description"] or "",
                            order=t["sort_order"],
                        )
                        for t in task_rows
                    ],
                )
            )
        return steps

    def _row_to_template(self, conn: sqlite3.Connection, row: sqlite3.Row) -> ProjectTemplate:
        return ProjectTemplate(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            steps=self._load_steps(conn, row["id"]),
        )

    def create_template(self, title: str, description: str = "") -> ProjectTemplate:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO project_templates (title, description, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (title, description, now, now),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM project_templates WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return self._row_to_template(conn, row)

    def get_template(self, template_id: int) -> Optional[ProjectTemplate]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM project_templates WHERE id = ?", (template_id,)
            ).fetchone()
            return self._row_to_template(conn, row) if row else None

    def list_templates(self) -> List[ProjectTemplate]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM project_templates ORDER BY created_at DESC, id DESC"
            ).fetchall()
            return [self._row_to_template(conn, row) for row in rows]

    def delete_template(self, template_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM project_templates WHERE id = ?", (template_id,))
            conn.commit()
            return cursor.rowcount > 0

    def add_step(
        self,
        template_id: int,
        title: str,
        description: str = "",
        order: int = 0,
        tasks: Iterable[dict] = (),
    ) -> TemplateStep:
        """テンプレートに工程（と任意のタスク）を追加する

        Raises:
            EntityNotFoundError: テンプレートが存在しない場合
        """
        with self._connect() as conn:
            if conn.execute(
                "SELECT 1 FROM project_templates WHERE id = ?", (template_id,)
            ).fetchone() is None:
                raise EntityNotFoundError("Template", template_id)

            cursor = conn.execute(
                "INSERT INTO template_steps (template_id, title, description, sort_order) VALUES (?, ?, ?, ?)",
                (template_id, title, description, order),
            )
            step_id = cursor.lastrowid
            conn.executemany(
                "INSERT INTO template_tasks (template_step_id, title, description, sort_order) VALUES (?, ?, ?, ?)",
                [
                    (step_id, task["title"], task.get("description", ""), task.get("order", index))
                    for index, task in enumerate(tasks)
                ],
            )
            conn.execute(
                "UPDATE project_templates SET updated_at = ? WHERE id = ?",
                (self._now(), template_id),
            )
            conn.commit()
            step = next(s for s in self._load_steps(conn, template_id) if s.id == step_id)
        return step

    def update_template(
        self,
        template_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[ProjectTemplate]:
        """タイトル・説明を更新する（テンプレートがなければNone）"""
        values = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description

        with self._connect() as conn:
            if values:
                values["updated_at"] = self._now()
                assignments = ", ".join(f"{column} = ?" for column in values)
                conn.execute(
                    f"UPDATE project_templates SET {assignments} WHERE id = ?",
                    [*values.values(), template_id],
                )
                conn.commit()
            row = conn.execute(
                "SELECT * FROM project_templates WHERE id = ?", (template_id,)
            ).fetchone()
            return self._row_to_template(conn, row) if row else None

    def _require_owned_step(self, conn: sqlite3.Connection, template_id: int, step_id: int) -> None:
        if conn.execute(
            "SELECT 1 FROM project_templates WHERE id = ?", (template_id,)
        ).fetchone() is None:
            raise EntityNotFoundError("Template", template_id)
        if conn.execute(
            "SELECT 1 FROM template_steps WHERE id = ? AND template_id = ?",
            (step_id, template_id),
        ).fetchone() is None:
            raise EntityNotFoundError("Template step", step_id)

    def update_step(
        self,
        template_id: int,
        step_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> TemplateStep:
        """テンプレート工程のタイトル・説明・順序を更新する

        Raises:
            EntityNotFoundError: テンプレートが存在しない、または工程が別テンプレートに属する場合
        """
        values = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description
        if order is not None:
            values["sort_order"] = order

        with self._connect() as conn:
            self._require_owned_step(conn, template_id, step_id)
            if values:
                assignments = ", ".join(f"{column} = ?" for column in values)
                conn.execute(
                    f"UPDATE template_steps SET {assignments} WHERE id = ?",
                    [*values.values(), step_id],
                )
                conn.execute(
                    "UPDATE project_templates SET updated_at = ? WHERE id = ?",
                    (self._now(), template_id),
                )
                conn.commit()
            return next(s for s in self._load_steps(conn, template_id) if s.id == step_id)

    def remove_step(self, template_id: int, step_id: int) -> None:
        """テンプレート工程を配下タスクごと削除する

        Raises:
            EntityNotFoundError: テンプレートが存在しない、または工程が別テンプレートに属する場合
        """
        with self._connect() as conn:
            self._require_owned_step(conn, template_id, step_id)
            conn.execute("DELETE FROM template_steps WHERE id = ?", (step_id,))
            conn.execute(
                "UPDATE project_templates SET updated_at = ? WHERE id = ?",
                (self._now(), template_id),
            )
            conn.commit()
