import logging

from fastapi.testclient import TestClient

from src.server.app import create_app, get_construction_service


def create_test_client(tmp_path, monkeypatch) -> TestClient:
    db_path = tmp_path / "api_sitebook.db"
    monkeypatch.setenv("SITEBOOK_DB_PATH", str(db_path))
    get_construction_service.cache_clear()
    app = create_app()
    return TestClient(app)


def seed_project(client: TestClient) -> dict:
    """プロジェクト1件・工程1件・タスク2件を作成する"""
    project = client.post("/api/projects", json={"title": "倉庫新築", "budget": 5000000}).json()
    step = client.post(
        "/api/project-steps", json={"project_id": project["id"], "title": "基礎"}
    ).json()["step"]
    tasks = [
        client.post(
            "/api/tasks",
            json={"step_id": step["id"], "title": title, "created_by": "u-1"},
        ).json()["task"]
        for title in ("掘削", "配筋")
    ]
    return {"project": project, "step": step, "tasks": tasks}


def test_health(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_project_crud_flow(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)

    resp = client.get("/api/projects")
    assert resp.status_code == 200
    assert resp.json() == []

    resp = client.post(
        "/api/projects",
        json={"title": "改修工事", "budget": 1000, "start_date": "2025-05-01"},
    )
    assert resp.status_code == 200
    project = resp.json()
    assert project["status"] == "DRAFT"
    assert project["start_date"] == "2025-05-01"

    resp = client.patch(f"/api/projects/{project['id']}", json={"budget": None, "title": "改修"})
    assert resp.status_code == 200
    assert resp.json()["budget"] is None
    assert resp.json()["title"] == "改修"

    resp = client.get("/api/projects/stats")
    assert resp.status_code == 200
    assert resp.json()["total_projects"] == 1

    resp = client.delete(f"/api/projects/{project['id']}")
    assert resp.status_code == 200
    assert resp.json()["deleted"] is True

    assert client.get(f"/api/projects/{project['id']}").status_code == 404
    assert client.delete(f"/api/projects/{project['id']}").status_code == 404


def test_task_status_change_cascades(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)
    task_id = seeded["tasks"][0]["id"]

    resp = client.patch(f"/api/tasks/{task_id}", json={"status": "IN_PROGRESS"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["task"]["status"] == "IN_PROGRESS"
    assert [c["entity"] for c in body["cascade"]["changes"]] == ["step", "project"]

    step = client.get(f"/api/project-steps/{seeded['step']['id']}").json()
    assert step["status"] == "IN_PROGRESS"
    project = client.get(f"/api/projects/{seeded['project']['id']}").json()
    assert project["status"] == "IN_PROGRESS"

    for task in seeded["tasks"]:
        client.patch(f"/api/tasks/{task['id']}", json={"status": "DONE"})
    project = client.get(f"/api/projects/{seeded['project']['id']}").json()
    assert project["status"] == "COMPLETED"


def test_task_update_without_status_has_no_cascade(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)
    task_id = seeded["tasks"][0]["id"]

    resp = client.patch(f"/api/tasks/{task_id}", json={"assigned_to": "u-9"})

    assert resp.status_code == 200
    assert resp.json()["task"]["assigned_to"] == "u-9"
    assert resp.json()["cascade"]["changes"] == []


def test_automatic_status_preview_and_recompute(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)
    project_id = seeded["project"]["id"]

    resp = client.patch(f"/api/projects/{project_id}", json={"status": "CANCELLED"})
    assert resp.json()["status"] == "CANCELLED"

    resp = client.patch(f"/api/tasks/{seeded['tasks'][0]['id']}", json={"status": "BLOCKED"})
    assert resp.json()["cascade"]["preserved_project_id"] == project_id

    resp = client.get(f"/api/projects/{project_id}/automatic-status")
    assert resp.status_code == 200
    assert resp.json() == {
        "current_status": "CANCELLED",
        "automatic_status": "SUSPENDED",
        "rule": "any_halted",
        "reason": resp.json()["reason"],
    }

    resp = client.post(f"/api/projects/{project_id}/recompute-status")
    assert resp.json()["project"]["status"] == "CANCELLED"

    resp = client.post(f"/api/projects/{project_id}/recompute-status", params={"force": "true"})
    assert resp.status_code == 200
    assert resp.json()["project"]["status"] == "SUSPENDED"


def test_step_endpoints(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)
    project_id = seeded["project"]["id"]
    step_id = seeded["step"]["id"]

    resp = client.patch(f"/api/project-steps/{step_id}", json={"status": "SUSPENDED"})
    assert resp.status_code == 200
    assert resp.json()["cascade"]["changes"][0]["new"] == "SUSPENDED"

    resp = client.get(f"/api/project-steps/{step_id}/automatic-status")
    assert resp.json()["current_status"] == "SUSPENDED"
    assert resp.json()["automatic_status"] == "PENDING"

    resp = client.get(f"/api/project-steps/project/{project_id}")
    assert [s["id"] for s in resp.json()] == [step_id]

    resp = client.delete(f"/api/project-steps/{step_id}")
    assert resp.status_code == 200
    assert client.get(f"/api/tasks/step/{step_id}").status_code == 404


def test_validation_and_not_found(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)

    assert client.patch("/api/tasks/999", json={"status": "DONE"}).status_code == 404
    assert client.post(
        "/api/tasks", json={"step_id": 999, "title": "x", "created_by": "u-1"}
    ).status_code == 404

    seeded = seed_project(client)
    resp = client.post("/api/tasks", json={"step_id": seeded["step"]["id"], "title": "x"})
    assert resp.status_code == 422
    resp = client.patch(f"/api/tasks/{seeded['tasks'][0]['id']}", json={"status": "FINISHED"})
    assert resp.status_code == 422


def test_template_apply(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)

    resp = client.post(
        "/api/templates",
        json={
            "title": "標準工程",
            "steps": [{"title": "準備", "tasks": [{"title": "仮設"}]}],
        },
    )
    assert resp.status_code == 200
    template = resp.json()

    resp = client.post(f"/api/templates/{template['id']}/steps", json={"title": "仕上", "order": 1})
    assert resp.status_code == 200

    resp = client.post(
        f"/api/templates/{template['id']}/apply",
        json={"project_id": seeded["project"]["id"], "actor_id": "admin-1"},
    )
    assert resp.status_code == 200
    steps = resp.json()["steps"]
    assert [s["title"] for s in steps] == ["準備", "仕上"]

    tasks = client.get(f"/api/tasks/step/{steps[0]['id']}").json()
    assert tasks[0]["created_by"] == "admin-1"
    assert tasks[0]["status"] == "TODO"

    assert client.delete(f"/api/templates/{template['id']}").status_code == 200
    assert client.get(f"/api/templates/{template['id']}").status_code == 404


def test_template_update_endpoints(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    owner = client.post(
        "/api/templates", json={"title": "標準", "steps": [{"title": "準備"}, {"title": "撤去"}]}
    ).json()
    other = client.post("/api/templates", json={"title": "別"}).json()
    keep_id, drop_id = [s["id"] for s in owner["steps"]]

    resp = client.patch(f"/api/templates/{owner['id']}", json={"title": "標準工程"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "標準工程"

    resp = client.patch(f"/api/templates/{owner['id']}/steps/{keep_id}", json={"title": "仮設準備"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "仮設準備"

    resp = client.patch(f"/api/templates/{other['id']}/steps/{keep_id}", json={"title": "x"})
    assert resp.status_code == 404
    resp = client.delete(f"/api/templates/{other['id']}/steps/{drop_id}")
    assert resp.status_code == 404

    resp = client.delete(f"/api/templates/{owner['id']}/steps/{drop_id}")
    assert resp.status_code == 200
    steps = client.get(f"/api/templates/{owner['id']}").json()["steps"]
    assert [s["title"] for s in steps] == ["仮設準備"]

    assert client.patch("/api/templates/999", json={"title": "x"}).status_code == 404


def test_mutations_are_logged(tmp_path, monkeypatch, caplog):
    client = create_test_client(tmp_path, monkeypatch)
    seeded = seed_project(client)
    project_id = seeded["project"]["id"]
    client.patch(f"/api/projects/{project_id}", json={"status": "CANCELLED"})

    with caplog.at_level(logging.INFO, logger="src.server.routes"):
        client.patch(f"/api/tasks/{seeded['tasks'][0]['id']}", json={"status": "IN_PROGRESS"})
        client.delete(f"/api/tasks/{seeded['tasks'][1]['id']}")
        client.delete(f"/api/project-steps/{seeded['step']['id']}")
        client.delete(f"/api/projects/{project_id}")

    messages = [r.getMessage() for r in caplog.records]
    assert f"Task {seeded['tasks'][0]['id']} changed; project {project_id} kept its terminal status" in messages
    assert f"Deleted task {seeded['tasks'][1]['id']}" in messages
    assert f"Deleted step {seeded['step']['id']}" in messages
    assert f"Deleted project {project_id} with its steps and tasks" in messages
