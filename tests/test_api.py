from __future__ import annotations

import pytest

from src.taskpulse.taskpulse.container import Container
from src.taskpulse.taskpulse.main import create_app
from src.taskpulse.taskpulse.performance.service import PerformanceService
from src.taskpulse.taskpulse.scoring.service import ScoringService
from src.taskpulse.taskpulse.tasks.service import TaskService

FAR_FUTURE = "2099-01-01T00:00:00Z"


@pytest.fixture
def client(monkeypatch, task_repo, employees, sink, attendance_source, sales_source, performance_repo):
    monkeypatch.setenv("APP_ENV", "testing")
    container = Container(
        conn=None,
        tasks_repo=task_repo,
        employees=employees,
        attendance_repo=attendance_source,
        sales_calls_repo=sales_source,
        performance_repo=performance_repo,
        notifier=sink,
        task_service=TaskService(task_repo, employees, notifier=sink),
        scoring_service=ScoringService(task_repo, employees),
        performance_service=PerformanceService(
            performance_repo, task_repo, employees, attendance_source, sales_source, notifier=sink
        ),
    )
    app = create_app(container)
    return app.test_client()


def login(client, user_id, role, designation=None):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["role"] = role
        if designation:
            sess["designation"] = designation


def create(client, *assignees, title="Write docs"):
    return client.post(
        "/api/tasks",
        json={
            "title": title,
            "description": "User guide",
            "assignedTo": list(assignees),
            "dueDate": FAR_FUTURE,
            "estimatedHours": 3,
        },
    )


def test_requires_session(client):
    assert client.get("/api/tasks").status_code == 401
    assert client.get("/api/tasks/employee-of-the-month").status_code == 401


def test_create_and_fetch_task(client):
    login(client, 2, "project_manager")
    res = create(client, 10, 11)
    assert res.status_code == 201
    body = res.get_json()
    assert body["success"] is True
    task = body["data"]["task"]
    assert task["status"] == "pending"
    assert [a["role"] for a in task["assignedTo"]] == ["primary", "collaborator"]

    res = client.get(f"/api/tasks/{task['id']}")
    assert res.status_code == 200
    assert res.get_json()["data"]["task"]["title"] == "Write docs"


def test_error_mapping(client):
    login(client, 2, "project_manager")
    assert create(client).status_code == 400
    assert client.get("/api/tasks/999").status_code == 404

    task_id = create(client, 10).get_json()["data"]["task"]["id"]

    login(client, 11, "employee", "developer")
    res = client.get(f"/api/tasks/{task_id}")
    assert res.status_code == 403
    assert res.get_json()["success"] is False

    login(client, 10, "employee", "developer")
    assert client.post(f"/api/tasks/{task_id}/start").status_code == 200
    assert client.post(f"/api/tasks/{task_id}/start").status_code == 409

    login(client, 2, "project_manager")
    assert client.delete(f"/api/tasks/{task_id}/assignees/10").status_code == 409


def test_stop_reports_session_duration(client):
    login(client, 2, "project_manager")
    task_id = create(client, 10).get_json()["data"]["task"]["id"]

    login(client, 10, "employee", "developer")
    client.post(f"/api/tasks/{task_id}/start")
    res = client.post(f"/api/tasks/{task_id}/stop", json={"notes": "first pass"})
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["sessionDuration"] >= 0
    assert data["task"]["status"] == "in_progress"


def test_employee_update_is_restricted(client):
    login(client, 2, "project_manager")
    task_id = create(client, 10).get_json()["data"]["task"]["id"]

    login(client, 10, "employee", "developer")
    assert client.put(f"/api/tasks/{task_id}", json={"title": "Mine"}).status_code == 403
    res = client.put(f"/api/tasks/{task_id}", json={"status": "in_progress", "comment": "Started"})
    assert res.status_code == 200


def test_employee_of_the_month_endpoint(client):
    login(client, 2, "project_manager")
    first = create(client, 10).get_json()["data"]["task"]["id"]
    create(client, 11, title="Other")

    login(client, 10, "employee", "developer")
    client.post(f"/api/tasks/{first}/complete")

    res = client.get("/api/tasks/employee-of-the-month")
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["employeeOfTheMonth"]["userId"] == 10
    assert data["employeeOfTheMonth"]["user"]["fullName"] == "Ana"
    assert [s["userId"] for s in data["allRankings"]] == [10]

    assert client.get("/api/tasks/employee-of-the-month?startDate=nope").status_code == 400


def test_performance_endpoints_are_manager_only(client):
    login(client, 10, "employee", "developer")
    res = client.post(
        "/api/performance/calculate",
        json={"employeeId": 10, "startDate": "2024-01-01T00:00:00Z", "endDate": "2024-01-31T23:59:59Z"},
    )
    assert res.status_code == 403

    login(client, 1, "admin")
    res = client.post(
        "/api/performance/calculate",
        json={"employeeId": 10, "startDate": "2024-01-01T00:00:00Z", "endDate": "2024-01-31T23:59:59Z"},
    )
    assert res.status_code == 201
    perf = res.get_json()["data"]["performance"]
    assert perf["employeeId"] == 10
    assert perf["onTimeRate"] == 100
    assert perf["totalWorkingDays"] == 23

    res = client.put(f"/api/performance/{perf['id']}", json={"startDate": "2024-02-01T00:00:00Z"})
    assert res.status_code == 400

    res = client.get("/api/performance?period=monthly&limit=5")
    assert res.status_code == 200
    body = res.get_json()
    assert body["message"] == "Performance records retrieved successfully"
    assert [p["id"] for p in body["data"]["performances"]] == [perf["id"]]
    assert body["data"]["pagination"]["itemsPerPage"] == 5
    assert client.get("/api/performance?period=daily").status_code == 400

    login(client, 10, "employee", "developer")
    assert client.get("/api/performance").status_code == 403


def test_task_listing_filters_and_pages(client):
    login(client, 2, "project_manager")
    create(client, 10, title="Write docs")
    create(client, 11, title="Fix login")
    create(client, 11, title="Review docs")

    res = client.get("/api/tasks?assignedTo=11&limit=1&page=2")
    assert res.status_code == 200
    body = res.get_json()
    assert body["message"] == "Tasks retrieved successfully"
    assert [t["title"] for t in body["data"]["tasks"]] == ["Fix login"]
    assert body["data"]["pagination"] == {
        "currentPage": 2,
        "totalPages": 2,
        "totalItems": 2,
        "itemsPerPage": 1,
        "hasNextPage": False,
        "hasPrevPage": True,
    }

    res = client.get("/api/tasks?search=DOCS")
    assert {t["title"] for t in res.get_json()["data"]["tasks"]} == {"Write docs", "Review docs"}
    assert client.get("/api/tasks?assignedTo=me").status_code == 400
    assert client.get("/api/tasks?startDate=yesterday").status_code == 400
    assert client.get("/api/tasks?status=overdue").get_json()["data"]["tasks"] == []
