"""Dashboard, preferences, streak and achievements."""

from datetime import timedelta

from studystreak.core.timeutil import utcnow
from studystreak.models.user import User


class TestPreferences:
    def test_defaults(self, client, headers):
        prefs = client.get("/api/v1/users/me/preferences", headers=headers).json()["data"]
        assert prefs["focus_duration"] == 25
        assert prefs["short_break_duration"] == 5
        assert prefs["long_break_duration"] == 15
        assert prefs["long_break_interval"] == 4
        assert prefs["daily_goal"] == 120
        assert prefs["theme"] == "system"
        assert prefs["timezone"] == "UTC"

    def test_partial_update(self, client, headers):
        resp = client.put(
            "/api/v1/users/me/preferences",
            json={"focus_duration": 50, "theme": "dark", "timezone": "Asia/Seoul"},
            headers=headers,
        )
        assert resp.status_code == 200
        prefs = resp.json()["data"]
        assert prefs["focus_duration"] == 50
        assert prefs["theme"] == "dark"
        assert prefs["timezone"] == "Asia/Seoul"
        assert prefs["short_break_duration"] == 5

        me = client.get("/api/v1/auth/me", headers=headers).json()["data"]
        assert me["timezone"] == "Asia/Seoul"

    def test_new_focus_length_used_for_sessions(self, client, headers):
        client.put("/api/v1/users/me/preferences", json={"focus_duration": 45}, headers=headers)
        session = client.post("/api/v1/focus-sessions", json={}, headers=headers).json()["data"]
        assert session["planned_duration"] == 45

    def test_invalid_values(self, client, headers):
        assert client.put(
            "/api/v1/users/me/preferences", json={"timezone": "Mars/Olympus"}, headers=headers
        ).status_code == 422
        assert client.put(
            "/api/v1/users/me/preferences", json={"focus_duration": 2}, headers=headers
        ).status_code == 422
        assert client.put(
            "/api/v1/users/me/preferences", json={"theme": "neon"}, headers=headers
        ).status_code == 422


class TestDashboard:
    def test_empty_dashboard(self, client, auth, headers):
        data = client.get("/api/v1/dashboard", headers=headers).json()["data"]
        assert data["user_id"] == auth["user"]["id"]
        assert data["current_streak"] == 0
        assert data["level"] == {
            "level": 1,
            "current_xp": 0,
            "xp_into_level": 0,
            "xp_for_next_level": 500,
            "percent": 0.0,
        }
        assert data["today"]["study_minutes"] == 0
        assert data["today"]["daily_goal"] == 120
        assert data["task_counts"] == {"PENDING": 0, "IN_PROGRESS": 0, "COMPLETED": 0, "ARCHIVED": 0}
        assert data["active_session"] is None

    def test_dashboard_reflects_tasks_and_sessions(self, client, headers):
        due = (utcnow() + timedelta(days=2)).isoformat()
        client.post("/api/v1/tasks", json={"title": "Due soon", "due_date": due}, headers=headers)
        client.post("/api/v1/tasks", json={"title": "No date"}, headers=headers)
        client.post("/api/v1/focus-sessions", json={}, headers=headers)

        data = client.get("/api/v1/dashboard", headers=headers).json()["data"]
        assert data["task_counts"]["PENDING"] == 2
        assert [t["title"] for t in data["upcoming_tasks"]] == ["Due soon"]
        assert len(data["recent_sessions"]) == 1
        assert data["active_session"]["id"] == data["recent_sessions"][0]["id"]

    def test_broken_streak_shows_zero(self, client, auth, headers, db_call):
        async def _stale(db):
            user = await db.get(User, auth["user"]["id"])
            user.current_streak = 5
            user.longest_streak = 5
            user.last_active_date = utcnow().date() - timedelta(days=3)
            await db.commit()

        db_call(_stale)
        data = client.get("/api/v1/dashboard", headers=headers).json()["data"]
        assert data["current_streak"] == 0
        assert data["longest_streak"] == 5


class TestAchievements:
    def test_catalogue_with_progress(self, client, headers):
        items = client.get("/api/v1/achievements", headers=headers).json()["data"]
        assert [a["code"] for a in items] == [
            "first_steps",
            "week_warrior",
            "focus_master",
            "task_crusher",
            "social_butterfly",
            "marathon_learner",
        ]
        assert not any(a["unlocked"] for a in items)
        assert all(a["progress"] == 0 for a in items)

    def test_progress_counts_towards_requirement(self, client, auth, headers, db_call):
        async def _minutes(db):
            user = await db.get(User, auth["user"]["id"])
            user.total_focus_time = 250
            await db.commit()

        db_call(_minutes)
        items = {a["code"]: a for a in client.get("/api/v1/achievements", headers=headers).json()["data"]}
        assert items["marathon_learner"]["progress"] == 250
        assert items["marathon_learner"]["percent"] == 25.0
