"""Task CRUD, filters, list caching and completion side effects."""

import pytest
from sqlalchemy import select

from studystreak.models.focus import UserAnalytics
from studystreak.models.user import User


def _create(client, headers, **fields):
    payload = {"title": "Read chapter 3", "priority": "MEDIUM"}
    payload.update(fields)
    resp = client.post("/api/v1/tasks", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestTaskCrud:
    def test_create_task(self, client, headers):
        task = _create(
            client,
            headers,
            title="Linear algebra",
            description="Eigenvalues",
            priority="HIGH",
            estimated_time=90,
            tags=["math", "math", " exam "],
        )
        assert task["status"] == "PENDING"
        assert task["priority"] == "HIGH"
        assert task["total_focus_time"] == 0
        assert task["tags"] == ["math", "exam"]
        assert task["completed_at"] is None

    def test_create_sanitizes_markup(self, client, headers):
        task = _create(client, headers, title="<b>Essay</b>", description="onclick=alert(1) javascript:x")
        assert task["title"] == "bEssay/b"
        assert "onclick=" not in task["description"]
        assert "javascript:" not in task["description"]

    def test_create_validation(self, client, headers):
        assert client.post("/api/v1/tasks", json={"title": ""}, headers=headers).status_code == 422
        assert client.post(
            "/api/v1/tasks", json={"title": "x", "estimated_time": 500}, headers=headers
        ).status_code == 422
        assert client.post(
            "/api/v1/tasks", json={"title": "x", "tags": [f"t{i}" for i in range(11)]}, headers=headers
        ).status_code == 422

    def test_requires_auth(self, client):
        assert client.get("/api/v1/tasks").status_code == 401

    def test_get_single_task(self, client, headers):
        task = _create(client, headers)
        resp = client.get(f"/api/v1/tasks/{task['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["title"] == "Read chapter 3"

    def test_other_users_task_is_not_found(self, client, headers, make_user):
        task = _create(client, headers)
        _, other = make_user("other@example.com")
        resp = client.get(f"/api/v1/tasks/{task['id']}", headers=other)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Task not found"
        assert client.delete(f"/api/v1/tasks/{task['id']}", headers=other).status_code == 404

    def test_update_fields(self, client, headers):
        task = _create(client, headers)
        resp = client.patch(
            f"/api/v1/tasks/{task['id']}",
            json={"title": "Read chapter 4", "status": "IN_PROGRESS"},
            headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["title"] == "Read chapter 4"
        assert data["status"] == "IN_PROGRESS"
        assert data["unlocked_achievements"] == []

    def test_update_rejects_title_that_sanitizes_to_empty(self, client, headers):
        task = _create(client, headers)
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={"title": "<>"}, headers=headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("field", ["title", "priority", "status"])
    def test_update_rejects_null_for_required_fields(self, client, headers, field):
        task = _create(client, headers)
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={field: None}, headers=headers)
        assert resp.status_code == 422
        assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers).json()["data"]["priority"] == "MEDIUM"

    def test_update_clears_optional_field(self, client, headers):
        task = _create(client, headers, description="old notes")
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={"description": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["description"] is None

    def test_delete_task(self, client, headers):
        task = _create(client, headers)
        resp = client.delete(f"/api/v1/tasks/{task['id']}", headers=headers)
        assert resp.status_code == 204
        assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers).status_code == 404

        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["total_tasks"] == 0

    def test_delete_refreshes_cached_focus_history(self, client, headers):
        task = _create(client, headers)
        client.post("/api/v1/focus-sessions", json={"task_id": task["id"]}, headers=headers)
        before = client.get("/api/v1/focus-sessions", headers=headers).json()["data"]
        assert before["sessions"][0]["task_id"] == task["id"]

        client.delete(f"/api/v1/tasks/{task['id']}", headers=headers)
        after = client.get("/api/v1/focus-sessions", headers=headers).json()["data"]
        assert after["sessions"][0]["task_id"] is None


class TestTaskCompletion:
    def test_completion_awards_xp_and_counts(self, client, headers, auth, db_call):
        task = _create(client, headers)
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        data = resp.json()["data"]
        assert data["completed_at"] is not None

        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["completed_tasks"] == 1
        assert me["total_tasks"] == 1
        assert me["experience"] == 25

        async def _daily(db):
            rows = await db.execute(select(UserAnalytics).where(UserAnalytics.user_id == auth["user"]["id"]))
            return rows.scalars().all()

        daily = db_call(_daily)
        assert len(daily) == 1
        assert daily[0].tasks_completed == 1

    def test_reopening_clears_completion(self, client, headers):
        task = _create(client, headers)
        client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "PENDING"}, headers=headers)
        assert resp.json()["data"]["completed_at"] is None

        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["completed_tasks"] == 0

    def test_repeated_completion_is_counted_once(self, client, headers):
        task = _create(client, headers)
        client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["completed_tasks"] == 1
        assert me["experience"] == 25

    def test_deleting_completed_task_keeps_lifetime_count(self, client, headers):
        task = _create(client, headers)
        client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        client.delete(f"/api/v1/tasks/{task['id']}", headers=headers)
        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["completed_tasks"] == 1
        assert me["total_tasks"] == 0

    def test_task_crusher_unlocks_at_one_hundred(self, client, headers, auth, db_call):
        async def _bump(db):
            user = await db.get(User, auth["user"]["id"])
            user.completed_tasks = 99
            await db.commit()

        db_call(_bump)
        task = _create(client, headers)
        resp = client.patch(f"/api/v1/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
        codes = [a["code"] for a in resp.json()["data"]["unlocked_achievements"]]
        assert codes == ["task_crusher"]

        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["experience"] == 25 + 300


class TestTaskList:
    def test_pagination(self, client, headers):
        for i in range(5):
            _create(client, headers, title=f"Task {i}")
        resp = client.get("/api/v1/tasks", params={"page": 2, "limit": 2}, headers=headers)
        data = resp.json()["data"]
        assert len(data["items"]) == 2
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}

    def test_filters(self, client, headers):
        _create(client, headers, title="Physics lab", priority="HIGH", tags=["science"])
        _create(client, headers, title="History essay", priority="LOW", tags=["writing"])
        _create(client, headers, title="Chemistry notes", description="lab prep", tags=["science", "notes"])

        by_priority = client.get("/api/v1/tasks", params={"priority": "HIGH"}, headers=headers).json()["data"]
        assert [t["title"] for t in by_priority["items"]] == ["Physics lab"]

        by_search = client.get("/api/v1/tasks", params={"search": "LAB"}, headers=headers).json()["data"]
        assert {t["title"] for t in by_search["items"]} == {"Physics lab", "Chemistry notes"}

        by_tags = client.get("/api/v1/tasks", params={"tags": "notes,writing"}, headers=headers).json()["data"]
        assert {t["title"] for t in by_tags["items"]} == {"History essay", "Chemistry notes"}
        assert by_tags["pagination"]["total"] == 2

    def test_search_wildcards_are_literal(self, client, headers):
        _create(client, headers, title="100% done")
        _create(client, headers, title="1000 words")
        _create(client, headers, title="draft_v2")
        _create(client, headers, title="draft v2")

        percent = client.get("/api/v1/tasks", params={"search": "0%"}, headers=headers).json()["data"]
        assert [t["title"] for t in percent["items"]] == ["100% done"]

        underscore = client.get("/api/v1/tasks", params={"search": "t_v"}, headers=headers).json()["data"]
        assert [t["title"] for t in underscore["items"]] == ["draft_v2"]

    def test_sort_by_priority(self, client, headers):
        for priority in ("LOW", "URGENT", "MEDIUM", "HIGH"):
            _create(client, headers, title=priority.lower(), priority=priority)
        resp = client.get(
            "/api/v1/tasks", params={"sort_by": "priority", "sort_order": "desc"}, headers=headers
        )
        assert [t["priority"] for t in resp.json()["data"]["items"]] == ["URGENT", "HIGH", "MEDIUM", "LOW"]

    def test_list_is_cached_and_invalidated(self, client, headers):
        _create(client, headers)
        first = client.get("/api/v1/tasks", headers=headers)
        assert first.headers["X-Cache"] == "MISS"
        second = client.get("/api/v1/tasks", headers=headers)
        assert second.headers["X-Cache"] == "HIT"
        assert second.json()["data"] == first.json()["data"]

        _create(client, headers, title="Another")
        third = client.get("/api/v1/tasks", headers=headers)
        assert third.headers["X-Cache"] == "MISS"
        assert third.json()["data"]["pagination"]["total"] == 2

    def test_list_works_without_redis(self, client, headers, no_redis):
        resp = client.get("/api/v1/tasks", headers=headers)
        assert resp.status_code == 200
        assert resp.headers["X-Cache"] == "MISS"
