"""工事管理CLI の動作テスト"""

import json
import os
import subprocess
import sys
from pathlib import Path

from src.construction import build_service
from src.status_engine import ProjectStatus, TaskStatus


def run_cli(args: list[str], db_path: Path, env: dict | None = None) -> subprocess.CompletedProcess:
    """CLI実行ヘルパー"""
    cmd = [
        sys.executable,
        "-m",
        "src.construction.cli",
        "--db-path",
        str(db_path),
    ] + args
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        cwd=Path(__file__).parent.parent,
        env={**os.environ, **(env or {})},
    )


def seed(db_path: Path) -> dict:
    """プロジェクト1件・工程1件・タスク2件"""
    service = build_service(db_path=db_path)
    project = service.repository.create_project("集合住宅新築", budget=300.0)
    step, _ = service.create_step(project.id, "基礎")
    t1, _ = service.create_task(step.id, "掘削", "u-1")
    t2, _ = service.create_task(step.id, "配筋", "u-1")
    return {"project": project, "step": step, "tasks": [t1, t2]}


def test_cli_projects_empty(tmp_path):
    """空のプロジェクト一覧"""
    db_path = tmp_path / "cli_test.db"
    result = run_cli(["projects", "--format", "json"], db_path)
    assert result.returncode == 0
    assert json.loads(result.stdout) == []


def test_cli_set_task_status_cascades(tmp_path):
    """タスク更新でプロジェクトまで伝播する"""
    db_path = tmp_path / "cli_test.db"
    seeded = seed(db_path)
    task_id = seeded["tasks"][0].id

    result = run_cli(
        ["set-task-status", "--id", str(task_id), "--status", "IN_PROGRESS", "--format", "json"],
        db_path,
    )
    assert result.returncode == 0
    payload = json.loads(result.stdout)
    assert payload["task"] == {"id": task_id, "status": "IN_PROGRESS"}
    assert [c["new"] for c in payload["cascade"]["changes"]] == ["IN_PROGRESS", "IN_PROGRESS"]

    result = run_cli(["show", "--project-id", str(seeded["project"].id), "--format", "json"], db_path)
    assert result.returncode == 0
    shown = json.loads(result.stdout)
    assert shown["status"] == "IN_PROGRESS"
    assert shown["steps"][0]["status"] == "IN_PROGRESS"
    assert len(shown["steps"][0]["tasks"]) == 2


def test_cli_set_task_status_invalid(tmp_path):
    """不正なステータス・存在しないタスク"""
    db_path = tmp_path / "cli_test.db"
    seeded = seed(db_path)

    result = run_cli(
        ["set-task-status", "--id", str(seeded["tasks"][0].id), "--status", "FINISHED"], db_path
    )
    assert result.returncode == 1
    assert "不正なstatus値" in result.stderr

    result = run_cli(["set-task-status", "--id", "999", "--status", "DONE"], db_path)
    assert result.returncode == 1
    assert "not found" in result.stderr


def test_cli_recompute_respects_cancelled(tmp_path):
    """CANCELLEDは --force 指定時のみ上書き"""
    db_path = tmp_path / "cli_test.db"
    seeded = seed(db_path)
    service = build_service(db_path=db_path)
    project_id = seeded["project"].id
    service.update_project(project_id, status=ProjectStatus.CANCELLED)
    service.repository.update_task(seeded["tasks"][0].id, status=TaskStatus.DONE)
    service.repository.update_task(seeded["tasks"][1].id, status=TaskStatus.DONE)

    result = run_cli(["recompute", "--project-id", str(project_id), "--format", "json"], db_path)
    assert result.returncode == 0
    payload = json.loads(result.stdout)
    assert payload["project"]["status"] == "CANCELLED"
    assert payload["cascade"]["preserved_project_id"] == project_id

    result = run_cli(
        ["recompute", "--project-id", str(project_id), "--force", "--format", "json"], db_path
    )
    assert result.returncode == 0
    assert json.loads(result.stdout)["project"]["status"] == "COMPLETED"


def test_cli_text_output_and_stats(tmp_path):
    """テキスト出力と集計"""
    db_path = tmp_path / "cli_test.db"
    seed(db_path)

    result = run_cli(["projects"], db_path)
    assert result.returncode == 0
    assert "集合住宅新築" in result.stdout
    assert "DRAFT" in result.stdout

    result = run_cli(["stats"], db_path)
    assert result.returncode == 0
    stats = json.loads(result.stdout)
    assert stats["total_projects"] == 1
    assert stats["total_budget"] == 300.0


def test_cli_policy_defaults_to_configured_value(tmp_path):
    """--policy 省略時は SITEBOOK_MANUAL_POLICY が使われる"""
    db_path = tmp_path / "cli_test.db"
    seeded = seed(db_path)
    service = build_service(db_path=db_path)
    project_id = seeded["project"].id
    service.update_project(project_id, status=ProjectStatus.CANCELLED)
    env = {"SITEBOOK_MANUAL_POLICY": "always_derive"}

    result = run_cli(
        ["set-task-status", "--id", str(seeded["tasks"][0].id), "--status", "IN_PROGRESS",
         "--format", "json"],
        db_path,
        env=env,
    )
    assert result.returncode == 0
    payload = json.loads(result.stdout)
    assert payload["cascade"]["preserved_project_id"] is None
    assert service.get_project(project_id).status is ProjectStatus.IN_PROGRESS

    result = run_cli(["stats"], db_path, env={"SITEBOOK_MANUAL_POLICY": "sometimes"})
    assert result.returncode == 1
    assert "設定の読み込みに失敗しました" in result.stderr


def test_cli_policy_flag_wins_over_environment(tmp_path):
    """--policy 指定は環境変数より優先"""
    db_path = tmp_path / "cli_test.db"
    seeded = seed(db_path)
    service = build_service(db_path=db_path)
    project_id = seeded["project"].id
    service.update_project(project_id, status=ProjectStatus.CANCELLED)

    result = run_cli(
        ["--policy", "preserve_terminal", "recompute", "--project-id", str(project_id),
         "--force", "--format", "json"],
        db_path,
        env={"SITEBOOK_MANUAL_POLICY": "always_derive"},
    )
    assert result.returncode == 0
    assert json.loads(result.stdout)["project"]["status"] == "DRAFT"

    service.update_project(project_id, status=ProjectStatus.CANCELLED)
    result = run_cli(
        ["--policy", "preserve_terminal", "recompute", "--project-id", str(project_id),
         "--format", "json"],
        db_path,
        env={"SITEBOOK_MANUAL_POLICY": "always_derive"},
    )
    assert json.loads(result.stdout)["project"]["status"] == "CANCELLED"
