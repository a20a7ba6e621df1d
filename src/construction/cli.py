#!/usr/bin/env python3
"""
工事管理CLI - プロジェクトの状態確認とステータス操作

Usage:
    python -m src.construction.cli projects [--status STATUS] [--format json|text]
    python -m src.construction.cli show --project-id ID [--format json|text]
    python -m src.construction.cli set-task-status --id ID --status STATUS [--format json|text]
    python -m src.construction.cli recompute --project-id ID [--force] [--format json|text]
    python -m src.construction.cli stats
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Optional

from src.sitebook import Config
from src.status_engine import (
    CascadeResult,
    ConfigurationError,
    EntityNotFoundError,
    ManualStatusPolicy,
    ProjectStatus,
    StatusEngineError,
    TaskStatus,
)

from .models import Project, ProjectStep, Task
from .service import ConstructionService, build_service


def format_project_text(project: Project) -> str:
    """プロジェクトをテキスト形式で整形"""
    budget = f"{project.budget:.2f}" if project.budget is not None else "未設定"
    return f"[{project.id}] {project.status.value} | 予算: {budget} | {project.title}"


def format_project_json(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "status": project.status.value,
        "budget": project.budget,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


def format_step_json(step: ProjectStep, tasks: list[Task]) -> Dict[str, Any]:
    return {
        "id": step.id,
        "title": step.title,
        "order": step.order,
        "status": step.status.value,
        "tasks": [
            {"id": t.id, "title": t.title, "status": t.status.value} for t in tasks
        ],
    }


def format_cascade_text(result: CascadeResult) -> str:
    if not result.changes:
        lines = ["ステータス変更なし"]
    else:
        lines = [f"{c.entity} {c.entity_id}: {c.old} -> {c.new}" for c in result.changes]
    if result.preserved_project_id is not None:
        lines.append(f"project {result.preserved_project_id}: 終端ステータスのため保持")
    return "\n".join(lines)


def cmd_projects(service: ConstructionService, status: Optional[str], output_format: str) -> int:
    """プロジェクト一覧を表示"""
    try:
        status_filter = ProjectStatus(status) if status else None
    except ValueError:
        print(f"Error: 不正なstatus値: {status}", file=sys.stderr)
        return 1

    items = service.repository.list_projects(status_filter)
    if output_format == "json":
        print(json.dumps([format_project_json(p) for p in items], ensure_ascii=False))
    elif not items:
        print("プロジェクトは登録されていません。")
    else:
        for item in items:
            print(format_project_text(item))
    return 0


def cmd_show(service: ConstructionService, project_id: int, output_format: str) -> int:
    """プロジェクトと工程・タスクのステータスを表示"""
    try:
        project = service.get_project(project_id)
        steps = service.list_steps(project_id)
    except EntityNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    step_payloads = [format_step_json(s, service.repository.list_tasks(s.id)) for s in steps]
    if output_format == "json":
        payload = format_project_json(project)
        payload["steps"] = step_payloads
        print(json.dumps(payload, ensure_ascii=False))
        return 0

    print(format_project_text(project))
    for step in step_payloads:
        print(f"  [{step['id']}] {step['status']} | {step['title']}")
        for task in step["tasks"]:
            print(f"      [{task['id']}] {task['status']} | {task['title']}")
    return 0


def cmd_set_task_status(
    service: ConstructionService, task_id: int, status: str, output_format: str
) -> int:
    """タスクのステータスを変更し、カスケードを実行"""
    try:
        task_status = TaskStatus(status)
    except ValueError:
        allowed = "|".join(s.value for s in TaskStatus)
        print(f"Error: 不正なstatus値: {status}。{allowed}のいずれかを指定してください。", file=sys.stderr)
        return 1

    try:
        task, result = service.set_task_status(task_id, task_status)
    except EntityNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except StatusEngineError as exc:
        print(f"Error: ステータス更新に失敗しました: {exc}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps(
            {"task": {"id": task.id, "status": task.status.value}, "cascade": result.to_dict()},
            ensure_ascii=False,
        ))
    else:
        print(f"更新しました: [{task.id}] {task.status.value} | {task.title}")
        print(format_cascade_text(result))
    return 0


def cmd_recompute(
    service: ConstructionService, project_id: int, force: bool, output_format: str
) -> int:
    """プロジェクトのステータスを再導出"""
    try:
        project, result = service.recompute_project(project_id, force=force)
    except EntityNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except StatusEngineError as exc:
        print(f"Error: 再計算に失敗しました: {exc}", file=sys.stderr)
        return 1

    if output_format == "json":
        print(json.dumps(
            {"project": format_project_json(project), "cascade": result.to_dict()},
            ensure_ascii=False,
        ))
    else:
        print(format_project_text(project))
        print(format_cascade_text(result))
    return 0


def cmd_stats(service: ConstructionService) -> int:
    """集計をJSONで表示"""
    print(json.dumps(service.project_stats(), ensure_ascii=False))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """CLIエントリポイント"""
    parser = argparse.ArgumentParser(
        description="工事管理CLI - プロジェクトの状態確認とステータス操作",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="SQLiteデータベースファイルのパス（デフォルト: data/sitebook.db）",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in ManualStatusPolicy],
        default=None,
        help="手動設定ステータスの扱い（デフォルト: 設定ファイル・SITEBOOK_MANUAL_POLICY の値）",
    )

    subparsers = parser.add_subparsers(dest="command", help="実行するコマンド", required=True)

    def add_format(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--format",
            choices=["json", "text"],
            default="text",
            help="出力フォーマット（デフォルト: text）",
        )

    parser_projects = subparsers.add_parser("projects", help="プロジェクト一覧を表示")
    parser_projects.add_argument("--status", help="ステータスで絞り込み")
    add_format(parser_projects)

    parser_show = subparsers.add_parser("show", help="プロジェクトの工程とタスクを表示")
    parser_show.add_argument("--project-id", type=int, required=True, help="プロジェクトID")
    add_format(parser_show)

    parser_task = subparsers.add_parser("set-task-status", help="タスクのステータスを変更")
    parser_task.add_argument("--id", type=int, required=True, help="タスクID")
    parser_task.add_argument("--status", required=True, help="新しいステータス")
    add_format(parser_task)

    parser_recompute = subparsers.add_parser("recompute", help="プロジェクトのステータスを再導出")
    parser_recompute.add_argument("--project-id", type=int, required=True, help="プロジェクトID")
    parser_recompute.add_argument(
        "--force", action="store_true", help="終端ステータス（CANCELLED）も上書きする"
    )
    add_format(parser_recompute)

    subparsers.add_parser("stats", help="プロジェクト集計を表示")

    args = parser.parse_args(argv)

    try:
        policy = ManualStatusPolicy(args.policy) if args.policy else Config.load().manual_policy
    except ConfigurationError as exc:
        print(f"Error: 設定の読み込みに失敗しました: {exc}", file=sys.stderr)
        return 1

    service = build_service(
        db_path=args.db_path if args.db_path else None,
        policy=policy,
    )

    if args.command == "projects":
        return cmd_projects(service, args.status, args.format)
    elif args.command == "show":
        return cmd_show(service, args.project_id, args.format)
    elif args.command == "set-task-status":
        return cmd_set_task_status(service, args.id, args.status, args.format)
    elif args.command == "recompute":
        return cmd_recompute(service, args.project_id, args.force, args.format)
    elif args.command == "stats":
        return cmd_stats(service)
    else:
        print(f"Error: 不明なコマンド: {args.command}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
