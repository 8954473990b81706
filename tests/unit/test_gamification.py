"""XP, levels and achievement unlocking."""

import pytest
from sqlalchemy import func, select

from studystreak.core.timeutil import utcnow
from studystreak.models.achievement import Achievement, UserAchievement
from studystreak.models.focus import FocusSession
from studystreak.models.social import Friendship
from studystreak.models.user import User
from studystreak.services.gamification import (
    ACHIEVEMENT_DEFINITIONS,
    award_xp,
    ensure_achievement_catalogue,
    evaluate_achievements,
    level_for_xp,
    level_progress,
    list_achievements,
)


class TestLevels:
    @pytest.mark.parametrize("xp,level", [(0, 1), (499, 1), (500, 2), (2450, 5), (10_000, 21)])
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp) == level

    def test_negative_xp_is_level_one(self):
        assert level_for_xp(-20) == 1

    def test_level_progress(self):
        assert level_progress(1250) == {
            "level": 3,
            "current_xp": 1250,
            "xp_into_level": 250,
            "xp_for_next_level": 250,
            "percent": 50.0,
        }

    def test_award_xp_levels_up(self):
        user = User(experience=480, level=1)
        assert award_xp(user, 30) == 30
        assert user.experience == 510
        assert user.level == 2

    def test_award_nothing(self):
        user = User(experience=10, level=1)
        assert award_xp(user, 0) == 0
        assert user.experience == 10


def test_catalogue_codes_are_unique():
    codes = [d["code"] for d in ACHIEVEMENT_DEFINITIONS]
    assert len(codes) == len(set(codes)) == 6


async def _make_user(db, email="gamer@example.com", **fields):
    user = User(email=email, name="Game Player", password_hash="x", **fields)
    db.add(user)
    await db.flush()
    return user


class TestAchievements:
    async def test_catalogue_is_seeded_once(self, db_session):
        await ensure_achievement_catalogue(db_session)
        await ensure_achievement_catalogue(db_session)
        count = (await db_session.execute(select(func.count(Achievement.id)))).scalar_one()
        assert count == len(ACHIEVEMENT_DEFINITIONS)

    async def test_first_session_unlocks_first_steps(self, db_session):
        user = await _make_user(db_session)
        db_session.add(
            FocusSession(user_id=user.id, planned_duration=25, duration=25, ended_at=utcnow(), completed=True)
        )

        unlocked = await evaluate_achievements(db_session, user)
        assert [a.code for a in unlocked] == ["first_steps"]
        assert user.experience == 50

        again = await evaluate_achievements(db_session, user)
        assert again == []
        assert user.experience == 50

    async def test_longest_streak_counts_for_week_warrior(self, db_session):
        user = await _make_user(db_session, current_streak=0, longest_streak=7)
        unlocked = await evaluate_achievements(db_session, user)
        assert [a.code for a in unlocked] == ["week_warrior"]

    async def test_several_unlocks_at_once(self, db_session):
        user = await _make_user(db_session, total_focus_time=1000, completed_tasks=100)
        unlocked = await evaluate_achievements(db_session, user)
        assert {a.code for a in unlocked} == {"task_crusher", "marathon_learner"}
        assert user.experience == 300 + 1000
        assert user.level == 3

    async def test_friends_count_both_directions(self, db_session):
        user = await _make_user(db_session)
        for i in range(5):
            other = await _make_user(db_session, email=f"friend{i}@example.com")
            if i % 2:
                db_session.add(Friendship(user_id=user.id, friend_id=other.id, status="ACCEPTED"))
            else:
                db_session.add(Friendship(user_id=other.id, friend_id=user.id, status="ACCEPTED"))

        unlocked = await evaluate_achievements(db_session, user)
        assert [a.code for a in unlocked] == ["social_butterfly"]

    async def test_list_marks_unlocked_entries(self, db_session):
        user = await _make_user(db_session, longest_streak=3)
        catalogue = await ensure_achievement_catalogue(db_session)
        first_steps = next(a for a in catalogue if a.code == "first_steps")
        db_session.add(UserAchievement(user_id=user.id, achievement_id=first_steps.id))
        await db_session.flush()

        items = {item["code"]: item for item in await list_achievements(db_session, user)}
        assert items["first_steps"]["unlocked"] is True
        assert items["first_steps"]["percent"] == 100.0
        assert items["week_warrior"]["unlocked"] is False
        assert items["week_warrior"]["progress"] == 3
        assert items["week_warrior"]["percent"] == 42.9
