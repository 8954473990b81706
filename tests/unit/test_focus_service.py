"""Focus session invariants enforced below the API."""

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from studystreak.core.timeutil import utcnow
from studystreak.models.focus import FocusSession
from studystreak.models.user import User
from studystreak.schemas.focus import FocusSessionStart
from studystreak.services import focus_service


async def _user_with_running_session(db):
    user = User(email="runner@example.com", name="Focus Runner", password_hash="x")
    db.add(user)
    await db.flush()
    db.add(FocusSession(user_id=user.id, planned_duration=25))
    await db.commit()
    return user


async def test_second_running_session_violates_index(db_session):
    user = await _user_with_running_session(db_session)
    db_session.add(FocusSession(user_id=user.id, planned_duration=25))
    with pytest.raises(IntegrityError):
        await db_session.commit()


async def test_finished_sessions_do_not_block(db_session):
    user = await _user_with_running_session(db_session)
    for _ in range(3):
        db_session.add(FocusSession(user_id=user.id, planned_duration=25, ended_at=utcnow()))
    await db_session.commit()

    total = (await db_session.execute(select(func.count(FocusSession.id)))).scalar_one()
    assert total == 4


async def test_racing_start_maps_to_conflict(db_session, fake_redis, monkeypatch):
    user = await _user_with_running_session(db_session)
    real_lookup = focus_service.get_active_session
    calls = []

    async def stale_then_real(db, user_id):
        # the first lookup runs before the competing start commits
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await real_lookup(db, user_id)

    monkeypatch.setattr(focus_service, "get_active_session", stale_then_real)

    with pytest.raises(HTTPException) as exc:
        await focus_service.start_session(db_session, user, FocusSessionStart(duration=30))
    assert exc.value.status_code == 400
    assert exc.value.detail["message"] == "You already have an active focus session"
    assert exc.value.detail["active_session"]["planned_duration"] == 25

    running = (
        await db_session.execute(
            select(func.count(FocusSession.id)).where(FocusSession.ended_at.is_(None))
        )
    ).scalar_one()
    assert running == 1
