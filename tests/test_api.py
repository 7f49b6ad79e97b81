from datetime import datetime

import pytest

TASKS = "/api/tasks"


def create_task_payload(title="Test Task", description="Do something", status="todo", due_date=None):
    payload = {"title": title, "description": description, "status": status}
    if due_date is not None:
        payload["dueDate"] = due_date
    return payload


def assert_task_shape(task: dict):
    for key in ["id", "title", "description", "status", "dueDate", "createdAt", "updatedAt"]:
        assert key in task
    assert isinstance(task["id"], int)
    assert task["status"] in ("todo", "in_progress", "done")
    datetime.fromisoformat(task["createdAt"].replace("Z", "+00:00"))
    datetime.fromisoformat(task["updatedAt"].replace("Z", "+00:00"))


class TestHealth:
    def test_health_reports_fallback_cache(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        data = res.json()
        assert data["status"] == "ok"
        assert data["storage"] == "in-memory"
        assert data["redis"] == "fallback"
        assert data["cache"]["backend"] == "memory"
        assert data["cache"]["state"] == "fallback"

    def test_root(self, client):
        res = client.get("/")
        assert res.status_code == 200
        assert res.json()["docs"] == "/docs"


class TestTasksCRUD:
    def test_create_minimal(self, client):
        res = client.post(TASKS, json={"title": "Buy milk"})
        assert res.status_code == 201
        task = res.json()
        assert_task_shape(task)
        assert task["title"] == "Buy milk"
        assert task["status"] == "todo"
        assert task["description"] is None
        assert task["dueDate"] is None

    def test_create_with_date_only_due_date(self, client):
        res = client.post(TASKS, json=create_task_payload(due_date="2099-12-25"))
        assert res.status_code == 201
        assert res.json()["dueDate"].startswith("2099-12-25T00:00:00")

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"title": ""},
            {"title": "x" * 256},
            {"title": "ok", "status": "blocked"},
            {"title": "ok", "dueDate": "someday"},
        ],
    )
    def test_create_rejects_invalid_payloads(self, client, payload):
        res = client.post(TASKS, json=payload)
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_get_and_not_found(self, client):
        tid = client.post(TASKS, json=create_task_payload(title="Read book")).json()["id"]

        res = client.get(f"{TASKS}/{tid}")
        assert res.status_code == 200
        assert res.json()["title"] == "Read book"

        missing = client.get(f"{TASKS}/999999")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Task with ID 999999 not found"

    def test_non_numeric_id_is_not_found(self, client):
        res = client.get(f"{TASKS}/abc")
        assert res.status_code == 404
        assert res.json()["detail"] == "Invalid task ID: abc"

    def test_patch_partial_update(self, client):
        created = client.post(
            TASKS, json=create_task_payload(title="Report", description="Q3", due_date="2025-09-30")
        ).json()

        res = client.patch(f"{TASKS}/{created['id']}", json={"status": "done"})
        assert res.status_code == 200
        updated = res.json()
        assert updated["status"] == "done"
        assert updated["title"] == "Report"
        assert updated["description"] == "Q3"
        assert updated["dueDate"] == created["dueDate"]

    def test_put_has_partial_semantics_and_clears_due_date(self, client):
        created = client.post(TASKS, json=create_task_payload(due_date="2025-09-30")).json()

        res = client.put(f"{TASKS}/{created['id']}", json={"dueDate": None})
        assert res.status_code == 200
        assert res.json()["dueDate"] is None
        assert res.json()["title"] == created["title"]

    def test_update_missing(self, client):
        res = client.patch(f"{TASKS}/4242", json={"title": "x"})
        assert res.status_code == 404

    def test_delete(self, client):
        tid = client.post(TASKS, json=create_task_payload()).json()["id"]

        res = client.delete(f"{TASKS}/{tid}")
        assert res.status_code == 200
        assert res.json() == {"message": "Task deleted successfully"}

        assert client.get(f"{TASKS}/{tid}").status_code == 404
        assert client.delete(f"{TASKS}/{tid}").status_code == 404


class TestTaskList:
    def test_envelope_shape_and_defaults(self, client):
        for i in range(12):
            client.post(TASKS, json=create_task_payload(title=f"Task {i}"))

        data = client.get(TASKS).json()
        assert set(data) == {"tasks", "total", "page", "limit", "totalPages"}
        assert (data["total"], data["page"], data["limit"], data["totalPages"]) == (12, 1, 10, 2)
        assert len(data["tasks"]) == 10
        assert_task_shape(data["tasks"][0])

    def test_paging_params(self, client):
        for i in range(5):
            client.post(TASKS, json=create_task_payload(title=f"Task {i}"))

        page = client.get(TASKS, params={"page": 2, "limit": 2}).json()
        assert [t["title"] for t in page["tasks"]] == ["Task 2", "Task 3"]

        window = client.get(TASKS, params={"skip": 4, "take": 5}).json()
        assert [t["title"] for t in window["tasks"]] == ["Task 4"]

    @pytest.mark.parametrize(
        "params", [{"limit": 101}, {"limit": 0}, {"page": 0}, {"skip": -1}, {"sort": "up"}]
    )
    def test_rejects_out_of_range_params(self, client, params):
        assert client.get(TASKS, params=params).status_code == 422

    def test_blank_and_all_params_are_ignored(self, client):
        client.post(TASKS, json=create_task_payload(status="done"))

        data = client.get(TASKS, params={"status": "all", "search": "", "page": ""}).json()
        assert data["total"] == 1

    def test_filters_sort_and_search(self, client):
        client.post(TASKS, json=create_task_payload(title="Buy milk", due_date="2025-01-02"))
        client.post(TASKS, json=create_task_payload(title="Walk dog", description="buy treats", due_date="2025-01-01"))
        client.post(TASKS, json=create_task_payload(title="File taxes", status="done"))

        search = client.get(TASKS, params={"search": "buy"}).json()
        assert [t["title"] for t in search["tasks"]] == ["Walk dog", "Buy milk"]

        ranged = client.get(TASKS, params={"dueDate": "2025-01-01..2025-01-01"}).json()
        assert [t["title"] for t in ranged["tasks"]] == ["Walk dog"]

        by_title = client.get(TASKS, params={"sortField": "title", "sort": "asc"}).json()
        assert [t["title"] for t in by_title["tasks"]] == ["Buy milk", "File taxes", "Walk dog"]

        bogus_sort = client.get(TASKS, params={"sortField": "secret"}).json()
        assert [t["title"] for t in bogus_sort["tasks"]] == ["Walk dog", "Buy milk", "File taxes"]

    def test_status_change_scenario(self, client):
        task = client.post(TASKS, json={"title": "A", "status": "todo"}).json()
        assert task["id"] == 1

        todo = client.get(TASKS, params={"status": "todo"}).json()
        assert [t["id"] for t in todo["tasks"]] == [1]
        assert todo["total"] == 1

        updated = client.patch(f"{TASKS}/1", json={"status": "done"}).json()
        assert updated["status"] == "done"

        assert client.get(TASKS, params={"status": "todo"}).json()["total"] == 0
        assert client.get(TASKS, params={"status": "done"}).json()["total"] == 1


class TestDatabaseBackend:
    def test_crud_round_trip(self, db_client):
        created = db_client.post(TASKS, json=create_task_payload(title="Persist me", due_date="2030-05-05"))
        assert created.status_code == 201
        tid = created.json()["id"]

        assert db_client.get(f"{TASKS}/{tid}").json()["dueDate"].startswith("2030-05-05")
        listed = db_client.get(TASKS, params={"dueDate": "2030-05-05"}).json()
        assert listed["total"] == 1

        db_client.patch(f"{TASKS}/{tid}", json={"title": "Persisted"})
        assert db_client.get(f"{TASKS}/{tid}").json()["title"] == "Persisted"
        assert db_client.get(TASKS).json()["tasks"][0]["title"] == "Persisted"

        assert db_client.delete(f"{TASKS}/{tid}").status_code == 200
        assert db_client.get(TASKS).json()["total"] == 0

    def test_health_reports_database_storage(self, db_client):
        assert db_client.get("/api/health").json()["storage"] == "database"

    @pytest.mark.parametrize(
        "params",
        [
            {"skip": 10**20},
            {"take": 2**63},
            {"page": 2**63 // 100 + 2, "limit": 100},
        ],
    )
    def test_paging_beyond_64_bit_offsets_is_rejected(self, db_client, params):
        res = db_client.get(TASKS, params=params)
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_largest_page_is_empty(self, db_client):
        db_client.post(TASKS, json=create_task_payload())

        res = db_client.get(TASKS, params={"page": (2**63 - 1) // 100 + 1, "limit": 100})
        assert res.status_code == 200
        assert res.json()["tasks"] == []


def test_seed_on_startup(settings):
    from fastapi.testclient import TestClient

    from taskforge.main import create_app

    seeded = settings.model_copy(update={"seed_demo_data": True})
    with TestClient(create_app(seeded)) as client:
        data = client.get(TASKS).json()

    assert data["total"] == 3
    assert {t["status"] for t in data["tasks"]} == {"todo", "in_progress", "done"}


@pytest.mark.asyncio
async def test_failed_startup_still_closes_cache(settings):
    from unittest.mock import AsyncMock, patch

    from taskforge.cache.layer import CacheLayer
    from taskforge.main import create_app, lifespan

    app = create_app(settings.model_copy(update={"persistence_backend": "database"}))

    failing = AsyncMock(side_effect=RuntimeError("db down"))
    with patch("taskforge.main.create_db_and_tables", failing):
        with patch.object(CacheLayer, "close", new_callable=AsyncMock) as close:
            with pytest.raises(RuntimeError, match="db down"):
                async with lifespan(app):
                    pass

    close.assert_awaited_once()


def test_run_serves_configured_app():
    from unittest.mock import patch

    from taskforge.core.config import Settings
    from taskforge.main import run

    configured = Settings(_env_file=None, host="0.0.0.0", port=9001, log_level="DEBUG")
    with patch("taskforge.main.get_settings", return_value=configured):
        with patch("taskforge.main.uvicorn.run") as serve:
            run()

    serve.assert_called_once_with(
        "taskforge.main:app", host="0.0.0.0", port=9001, log_level="debug"
    )
