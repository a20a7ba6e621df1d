import pytest

from src.construction import UNSET, ConstructionRepository, Priority
from src.status_engine import (
    EntityNotFoundError,
    ProjectStatus,
    StepStatus,
    TaskStatus,
)


@pytest.fixture
def repo(tmp_path) -> ConstructionRepository:
    return ConstructionRepository(db_path=tmp_path / "sitebook.db")


def test_project_crud_cycle(repo):
    created = repo.create_project(
        title="倉庫新築工事",
        description="鉄骨2階建て",
        budget=12000000.0,
        start_date="2025-04-01",
    )
    assert created.status is ProjectStatus.DRAFT
    assert created.budget == 12000000.0

    updated = repo.update_project(created.id, status=ProjectStatus.CANCELLED, budget=None)
    assert updated is not None
    assert updated.status is ProjectStatus.CANCELLED
    assert updated.budget is None
    assert updated.start_date == "2025-04-01"

    assert repo.list_projects(ProjectStatus.DRAFT) == []
    assert [p.id for p in repo.list_projects()] == [created.id]

    assert repo.delete_project(created.id) is True
    assert repo.get_project(created.id) is None
    assert repo.delete_project(created.id) is False


def test_update_missing_project_returns_none(repo):
    assert repo.update_project(999, title="x") is None


def test_steps_and_tasks_are_ordered(repo):
    project = repo.create_project("改修工事")
    second = repo.create_step(project.id, "内装", order=2)
    first = repo.create_step(project.id, "解体", order=1)

    assert [s.id for s in repo.list_steps(project.id)] == [first.id, second.id]

    repo.create_task(first.id, "足場撤去", "u-1", order=1)
    repo.create_task(first.id, "養生", "u-1", order=0, priority=Priority.HIGH)
    tasks = repo.list_tasks(first.id)
    assert [t.title for t in tasks] == ["養生", "足場撤去"]
    assert tasks[0].priority is Priority.HIGH
    assert tasks[0].status is TaskStatus.TODO
    assert tasks[0].created_by == "u-1"


def test_update_task_clears_optional_fields(repo):
    project = repo.create_project("外構工事")
    step = repo.create_step(project.id, "舗装")
    task = repo.create_task(step.id, "転圧", "u-1", due_date="2025-06-30", assigned_to="u-2")

    updated = repo.update_task(task.id, due_date=None, assigned_to=UNSET, status=TaskStatus.REVIEW)

    assert updated.due_date is None
    assert updated.assigned_to == "u-2"
    assert updated.status is TaskStatus.REVIEW


def test_create_children_of_missing_parent_raises(repo):
    with pytest.raises(EntityNotFoundError):
        repo.create_step(42, "存在しない")
    with pytest.raises(EntityNotFoundError):
        repo.create_task(42, "存在しない", "u-1")


def test_deleting_project_removes_steps_and_tasks(repo):
    project = repo.create_project("解体工事")
    step = repo.create_step(project.id, "搬出")
    task = repo.create_task(step.id, "廃材処分", "u-1")

    repo.delete_project(project.id)

    assert repo.get_step(step.id) is None
    assert repo.get_task(task.id) is None


def test_status_store_port(repo):
    project = repo.create_project("橋梁補修")
    step = repo.create_step(project.id, "調査")
    task = repo.create_task(step.id, "目視点検", "u-1", status=TaskStatus.DONE)

    assert repo.step_id_for_task(task.id) == step.id
    assert repo.project_id_for_step(step.id) == project.id
    assert [r.status for r in repo.list_task_statuses(step.id)] == [TaskStatus.DONE]
    assert [r.id for r in repo.list_step_statuses(project.id)] == [step.id]

    repo.set_step_status(step.id, StepStatus.COMPLETED)
    repo.set_project_status(project.id, ProjectStatus.COMPLETED)
    assert repo.get_step_status(step.id) is StepStatus.COMPLETED
    assert repo.get_project_status(project.id) is ProjectStatus.COMPLETED


def test_status_store_port_missing_rows(repo):
    with pytest.raises(EntityNotFoundError):
        repo.step_id_for_task(1)
    with pytest.raises(EntityNotFoundError):
        repo.get_project_status(1)
    with pytest.raises(EntityNotFoundError):
        repo.set_step_status(1, StepStatus.BLOCKED)
    assert repo.list_task_statuses(1) == []


def test_project_stats(repo):
    repo.create_project("A", budget=100.0)
    repo.create_project("B", budget=300.0, status=ProjectStatus.IN_PROGRESS)
    repo.create_project("C")

    stats = repo.project_stats()

    assert stats["total_projects"] == 3
    assert stats["projects_by_status"]["DRAFT"] == 2
    assert stats["projects_by_status"]["IN_PROGRESS"] == 1
    assert stats["projects_by_status"]["CANCELLED"] == 0
    assert stats["budget_by_status"]["DRAFT"] == 100.0
    assert stats["total_budget"] == 400.0
    assert stats["average_budget"] == 200.0
    assert stats["recent_projects"] == 3


def test_db_path_from_environment(tmp_path, monkeypatch):
    db_path = tmp_path / "nested" / "env.db"
    monkeypatch.setenv("SITEBOOK_DB_PATH", str(db_path))

    repo = ConstructionRepository()

    assert repo.db_path == db_path
    assert db_path.exists()
