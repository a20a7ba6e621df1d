from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.status_engine import (
    EntityNotFoundError,
    ProjectStatus,
    StatusRecord,
    StatusStore,
    StepStatus,
    TaskStatus,
)

from .models import Priority, Project, ProjectStep, ProjectTemplate, Task

UNSET = object()

DB_PATH_ENV = "SITEBOOK_DB_PATH"


def resolve_db_path(db_path: Optional[Path] = None) -> Path:
    """引数 → 環境変数 → data/sitebook.db の順でDBパスを決める"""
    root = Path(__file__).resolve().parents[2]
    default_path = root / "data" / "sitebook.db"
    env_path = os.getenv(DB_PATH_ENV)
    if db_path:
        path = Path(db_path)
    elif env_path:
        path = Path(env_path)
    else:
        path = default_path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _in_clause(enum_type) -> str:
    return ",".join(f"'{member.value}'" for member in enum_type)


SCHEMA = f"""
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    status TEXT NOT NULL CHECK (status IN ({_in_clause(ProjectStatus)})),
    budget REAL,
    start_date TEXT,
    end_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS project_steps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK (status IN ({_in_clause(StepStatus)})),
    is_custom INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    step_id INTEGER NOT NULL REFERENCES project_steps(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK (status IN ({_in_clause(TaskStatus)})),
    priority TEXT NOT NULL CHECK (priority IN ({_in_clause(Priority)})),
    due_date TEXT,
    created_by TEXT NOT NULL,
    assigned_to TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_steps_project ON project_steps(project_id);
CREATE INDEX IF NOT EXISTS idx_tasks_step ON tasks(step_id);
CREATE INDEX IF NOT EXISTS idx_projects_status ON projects(status);
"""


class ConstructionRepository(StatusStore):
    """SQLiteベースのプロジェクト・工程・タスク管理。

    StatusStore ポートも実装し、カスケードから直接利用できる。
    """

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

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            status=ProjectStatus(row["status"]),
            budget=row["budget"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> ProjectStep:
        return ProjectStep(
            id=row["id"],
            project_id=row["project_id"],
            title=row["title"],
            description=row["description"] or "",
            order=row["sort_order"],
            status=StepStatus(row["status"]),
            is_custom=bool(row["is_custom"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            step_id=row["step_id"],
            title=row["title"],
            description=row["description"] or "",
            order=row["sort_order"],
            status=TaskStatus(row["status"]),
            priority=Priority(row["priority"]),
            due_date=row["due_date"],
            created_by=row["created_by"],
            assigned_to=row["assigned_to"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _require(conn: sqlite3.Connection, table: str, entity: str, entity_id: int) -> None:
        row = conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (entity_id,)).fetchone()
        if row is None:
            raise EntityNotFoundError(entity, entity_id)

    def _update_row(
        self, table: str, row_id: int, values: Dict[str, Any]
    ) -> Optional[sqlite3.Row]:
        """指定カラムだけ更新し、更新後の行を返す（行がなければNone）"""
        with self._connect() as conn:
            if values:
                values = {**values, "updated_at": self._now()}
                assignments = ", ".join(f"{column} = ?" for column in values)
                conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?",
                    [*values.values(), row_id],
                )
                conn.commit()
            return conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    def create_project(
        self,
        title: str,
        description: str = "",
        status: ProjectStatus = ProjectStatus.DRAFT,
        budget: Optional[float] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Project:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO projects (title, description, status, budget, start_date, end_date, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (title, description, status.value, budget, start_date, end_date, now, now),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_project(row)

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return self._row_to_project(row) if row else None

    def list_projects(self, status: Optional[ProjectStatus] = None) -> List[Project]:
        query = "SELECT * FROM projects"
        params: list[object] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_project(row) for row in rows]

    def update_project(
        self,
        project_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[ProjectStatus] = None,
        budget: Any = UNSET,
        start_date: Any = UNSET,
        end_date: Any = UNSET,
    ) -> Optional[Project]:
        values: Dict[str, Any] = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description
        if status is not None:
            values["status"] = ProjectStatus(status).value
        if budget is not UNSET:
            values["budget"] = budget
        if start_date is not UNSET:
            values["start_date"] = start_date
        if end_date is not UNSET:
            values["end_date"] = end_date

        row = self._update_row("projects", project_id, values)
        return self._row_to_project(row) if row else None

    def delete_project(self, project_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            conn.commit()
            return cursor.rowcount > 0

    def project_stats(self, recent_days: int = 30) -> Dict[str, Any]:
        """ダッシュボード用の集計"""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=recent_days)).isoformat()
        with self._connect() as conn:
            totals = conn.execute(
                "SELECT COUNT(*) AS total, COALESCE(SUM(budget), 0) AS total_budget, "
                "COALESCE(AVG(budget), 0) AS average_budget FROM projects"
            ).fetchone()
            by_status_rows = conn.execute(
                "SELECT status, COUNT(*) AS count, COALESCE(SUM(budget), 0) AS budget "
                "FROM projects GROUP BY status"
            ).fetchall()
            recent = conn.execute(
                "SELECT COUNT(*) FROM projects WHERE created_at >= ?", (cutoff,)
            ).fetchone()[0]

        by_status = {status.value: 0 for status in ProjectStatus}
        budget_by_status = {status.value: 0.0 for status in ProjectStatus}
        for row in by_status_rows:
            by_status[row["status"]] = row["count"]
            budget_by_status[row["status"]] = float(row["budget"])

        return {
            "total_projects": totals["total"],
            "projects_by_status": by_status,
            "budget_by_status": budget_by_status,
            "total_budget": float(totals["total_budget"]),
            "average_budget": float(totals["average_budget"]),
            "recent_projects": recent,
        }

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
    ) -> ProjectStep:
        now = self._now()
        with self._connect() as conn:
            self._require(conn, "projects", "Project", project_id)
            cursor = conn.execute(
                """
                INSERT INTO project_steps (project_id, title, description, sort_order, status, is_custom, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (project_id, title, description, order, status.value, int(is_custom), now, now),
            )
            conn.commit()
            row = conn.execute(
                "SELECT * FROM project_steps WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return self._row_to_step(row)

    def get_step(self, step_id: int) -> Optional[ProjectStep]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM project_steps WHERE id = ?", (step_id,)).fetchone()
        return self._row_to_step(row) if row else None

    def list_steps(self, project_id: int) -> List[ProjectStep]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM project_steps WHERE project_id = ? ORDER BY sort_order ASC, id ASC",
                (project_id,),
            ).fetchall()
        return [self._row_to_step(row) for row in rows]

    def update_step(
        self,
        step_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        order: Optional[int] = None,
        status: Optional[StepStatus] = None,
        is_custom: Optional[bool] = None,
    ) -> Optional[ProjectStep]:
        values: Dict[str, Any] = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description
        if order is not None:
            values["sort_order"] = order
        if status is not None:
            values["status"] = StepStatus(status).value
        if is_custom is not None:
            values["is_custom"] = int(is_custom)

        row = self._update_row("project_steps", step_id, values)
        return self._row_to_step(row) if row else None

    def delete_step(self, step_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM project_steps WHERE id = ?", (step_id,))
            conn.commit()
            return cursor.rowcount > 0

    def replace_steps(
        self, project_id: int, template: ProjectTemplate, actor_id: str
    ) -> List[ProjectStep]:
        """プロジェクトの全工程をテンプレートの内容で置き換える

        既存の工程（と配下タスク）は削除され、PENDINGの工程とTODOのタスクが作られる。
        """
        now = self._now()
        with self._connect() as conn:
            self._require(conn, "projects", "Project", project_id)
            conn.execute("DELETE FROM project_steps WHERE project_id = ?", (project_id,))
            for step in template.steps:
                cursor = conn.execute(
                    """
                    INSERT INTO project_steps (project_id, title, description, sort_order, status, is_custom, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (project_id, step.title, step.description, step.order,
                     StepStatus.PENDING.value, now, now),
                )
                new_step_id = cursor.lastrowid
                conn.executemany(
                    """
                    INSERT INTO tasks (step_id, title, description, sort_order, status, priority, created_by, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (new_step_id, task.title, task.description, task.order,
                         TaskStatus.TODO.value, Priority.MEDIUM.value, actor_id, now, now)
                        for task in step.tasks
                    ],
                )
            conn.commit()
        return self.list_steps(project_id)

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
    ) -> Task:
        now = self._now()
        with self._connect() as conn:
            self._require(conn, "project_steps", "Step", step_id)
            cursor = conn.execute(
                """
                INSERT INTO tasks (step_id, title, description, sort_order, status, priority, due_date,
                                   created_by, assigned_to, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (step_id, title, description, order, status.value, priority.value, due_date,
                 created_by, assigned_to, now, now),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_task(row)

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row else None

    def list_tasks(self, step_id: int) -> List[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE step_id = ? ORDER BY sort_order ASC, id ASC",
                (step_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def update_task(
        self,
        task_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        order: Optional[int] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[Priority] = None,
        due_date: Any = UNSET,
        assigned_to: Any = UNSET,
    ) -> Optional[Task]:
        values: Dict[str, Any] = {}
        if title is not None:
            values["title"] = title
        if description is not None:
            values["description"] = description
        if order is not None:
            values["sort_order"] = order
        if status is not None:
            values["status"] = TaskStatus(status).value
        if priority is not None:
            values["priority"] = Priority(priority).value
        if due_date is not UNSET:
            values["due_date"] = due_date
        if assigned_to is not UNSET:
            values["assigned_to"] = assigned_to

        row = self._update_row("tasks", task_id, values)
        return self._row_to_task(row) if row else None

    def delete_task(self, task_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # StatusStore
    # ------------------------------------------------------------------
    def _scalar(self, sql: str, entity: str, entity_id: int) -> Any:
        with self._connect() as conn:
            row = conn.execute(sql, (entity_id,)).fetchone()
        if row is None:
            raise EntityNotFoundError(entity, entity_id)
        return row[0]

    def step_id_for_task(self, task_id: int) -> int:
        return self._scalar("SELECT step_id FROM tasks WHERE id = ?", "Task", task_id)

    def project_id_for_step(self, step_id: int) -> int:
        return self._scalar("SELECT project_id FROM project_steps WHERE id = ?", "Step", step_id)

    def get_step_status(self, step_id: int) -> StepStatus:
        return StepStatus(
            self._scalar("SELECT status FROM project_steps WHERE id = ?", "Step", step_id)
        )

    def get_project_status(self, project_id: int) -> ProjectStatus:
        return ProjectStatus(
            self._scalar("SELECT status FROM projects WHERE id = ?", "Project", project_id)
        )

    def list_task_statuses(self, step_id: int) -> List[StatusRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, status FROM tasks WHERE step_id = ? ORDER BY id", (step_id,)
            ).fetchall()
        return [StatusRecord(row["id"], TaskStatus(row["status"])) for row in rows]

    def list_step_statuses(self, project_id: int) -> List[StatusRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, status FROM project_steps WHERE project_id = ? ORDER BY id",
                (project_id,),
            ).fetchall()
        return [StatusRecord(row["id"], StepStatus(row["status"])) for row in rows]

    def _set_status(self, table: str, entity: str, entity_id: int, status: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET status = ?, updated_at = ? WHERE id = ?",
                (status, self._now(), entity_id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise EntityNotFoundError(entity, entity_id)

    def set_step_status(self, step_id: int, status: StepStatus) -> None:
        self._set_status("project_steps", "Step", step_id, StepStatus(status).value)

    def set_project_status(self, project_id: int, status: ProjectStatus) -> None:
        self._set_status("projects", "Project", project_id, ProjectStatus(status).value)
