"""
Load the demo data set.

Wipes the StudyStreak tables and inserts a demo account with friends, tasks,
two weeks of focus sessions and analytics, a monthly challenge, unlocked
achievements and one AI conversation.

Usage:
    python scripts/seed_demo_data.py
"""

import asyncio
import calendar
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import delete  # noqa: E402

from studystreak.core.database import AsyncSessionLocal, create_all, engine  # noqa: E402
from studystreak.core.security import hash_password  # noqa: E402
from studystreak.core.timeutil import utcnow  # noqa: E402
from studystreak.models import (  # noqa: E402
    Achievement,
    AIConversation,
    AIMessage,
    Challenge,
    ChallengeParticipant,
    FocusSession,
    Friendship,
    Task,
    User,
    UserAchievement,
    UserAnalytics,
    UserPreference,
)
from studystreak.services.gamification import ensure_achievement_catalogue  # noqa: E402

DEMO_USER = {
    "email": "demo@studystreak.app",
    "password": "Demo@123456",
    "name": "Demo User",
}

FRIENDS = [
    {"email": "alice@example.com", "name": "Alice Johnson", "current_streak": 8, "longest_streak": 15,
     "total_focus_time": 2100, "completed_tasks": 28, "experience": 1200},
    {"email": "bob@example.com", "name": "Bob Smith", "current_streak": 3, "longest_streak": 10,
     "total_focus_time": 980, "completed_tasks": 15, "experience": 650},
    {"email": "carol@example.com", "name": "Carol Williams", "current_streak": 21, "longest_streak": 45,
     "total_focus_time": 5200, "completed_tasks": 89, "experience": 4500},
]

PLAN_REPLY = """Of course! Here's a structured plan for learning React:

**Week 1-2: Fundamentals**
- JavaScript ES6+ features (destructuring, arrow functions, modules)
- React basics: Components, JSX, Props

**Week 3-4: State & Hooks**
- useState and useEffect
- Custom hooks
- Context API

**Week 5-6: Advanced Patterns**
- React Router
- State management
- Performance optimization

I recommend 2-3 hours daily with 25-minute Pomodoro sessions. Want me to break this down further?"""

# child tables first
_TABLES = [
    AIMessage, AIConversation, UserAchievement, ChallengeParticipant, Challenge,
    FocusSession, Task, Friendship, UserAnalytics, UserPreference, User, Achievement,
]


async def seed() -> None:
    await create_all()
    now = utcnow()
    today = now.date()

    async with AsyncSessionLocal() as db:
        print("Cleaning existing data...")
        for model in _TABLES:
            await db.execute(delete(model))
        await db.commit()

        print("Creating achievements...")
        achievements = await ensure_achievement_catalogue(db)

        print("Creating users...")
        password_hash = hash_password(DEMO_USER["password"])
        demo = User(
            email=DEMO_USER["email"],
            name=DEMO_USER["name"],
            password_hash=password_hash,
            role="USER",
            current_streak=12,
            longest_streak=25,
            last_active_date=today,
            total_focus_time=3650,
            total_tasks=48,
            completed_tasks=42,
            experience=2450,
            level=2450 // 500 + 1,
            preferences=UserPreference(),
        )
        db.add(demo)
        friends = []
        for data in FRIENDS:
            friend = User(
                password_hash=password_hash,
                last_active_date=today - timedelta(days=1),
                level=data["experience"] // 500 + 1,
                preferences=UserPreference(),
                **data,
            )
            db.add(friend)
            friends.append(friend)
        await db.flush()

        print("Creating tasks...")
        task_rows = [
            ("Complete React Tutorial Chapter 5", "Learn about React hooks and state management",
             "COMPLETED", "HIGH", -2, 60, ["react", "frontend", "learning"]),
            ("Study Database Design Patterns", "Review normalization and indexing strategies",
             "IN_PROGRESS", "MEDIUM", 1, 90, ["database", "backend"]),
            ("Practice Algorithm Problems", "Solve 5 medium problems",
             "PENDING", "HIGH", 2, 120, ["algorithms", "interview-prep"]),
            ("Read Clean Code Chapter 3", "Functions and how to write them well",
             "PENDING", "LOW", 5, 45, ["reading", "best-practices"]),
            ("Build Portfolio Project", "Create a full-stack app",
             "IN_PROGRESS", "URGENT", 7, 480, ["project", "portfolio", "fullstack"]),
        ]
        tasks = []
        for title, description, task_status, priority, due_in, estimate, tags in task_rows:
            due = now + timedelta(days=due_in)
            task = Task(
                user_id=demo.id,
                title=title,
                description=description,
                status=task_status,
                priority=priority,
                due_date=due,
                estimated_time=estimate,
                tags=tags,
                completed_at=due if task_status == "COMPLETED" else None,
            )
            db.add(task)
            tasks.append(task)
        await db.flush()

        print("Creating focus sessions...")
        for i in range(15):
            started = datetime.combine(today - timedelta(days=i), datetime.min.time()) + timedelta(
                hours=9 + random.randint(0, 7), minutes=random.randint(0, 59)
            )
            duration = random.choice([25, 25, 50, 25, 45])
            task = random.choice(tasks)
            db.add(
                FocusSession(
                    user_id=demo.id,
                    task_id=task.id,
                    type=random.choice(["POMODORO", "DEEP_WORK", "POMODORO"]),
                    planned_duration=duration,
                    duration=duration,
                    started_at=started,
                    ended_at=started + timedelta(minutes=duration),
                    completed=random.random() > 0.1,
                    notes="Great focus session! Made good progress." if i % 3 == 0 else None,
                )
            )

        print("Creating challenge...")
        last_day = calendar.monthrange(today.year, today.month)[1]
        challenge = Challenge(
            title=f"{today.strftime('%B')} Study Sprint",
            description="Study for 50 hours this month and earn bonus XP!",
            type="STUDY_TIME",
            goal=3000,
            unit="minutes",
            start_date=datetime(today.year, today.month, 1),
            end_date=datetime(today.year, today.month, last_day, 23, 59, 59),
            is_public=True,
            creator_id=demo.id,
        )
        db.add(challenge)
        await db.flush()
        for user, progress in ((demo, 2450), (friends[0], 1800), (friends[2], 2900)):
            db.add(ChallengeParticipant(challenge_id=challenge.id, user_id=user.id, progress=progress))

        print("Creating friendships...")
        db.add(Friendship(user_id=demo.id, friend_id=friends[0].id, status="ACCEPTED", responded_at=now))
        db.add(Friendship(user_id=demo.id, friend_id=friends[2].id, status="ACCEPTED", responded_at=now))
        db.add(Friendship(user_id=friends[1].id, friend_id=demo.id, status="PENDING"))

        print("Awarding achievements...")
        by_code = {a.code: a for a in achievements}
        db.add(UserAchievement(user_id=demo.id, achievement_id=by_code["first_steps"].id,
                               unlocked_at=now - timedelta(days=30)))
        db.add(UserAchievement(user_id=demo.id, achievement_id=by_code["week_warrior"].id,
                               unlocked_at=now - timedelta(days=20)))

        print("Creating analytics data...")
        for i in range(14):
            db.add(
                UserAnalytics(
                    user_id=demo.id,
                    day=today - timedelta(days=i),
                    study_minutes=30 + random.randint(0, 149),
                    tasks_completed=random.randint(0, 4),
                    focus_sessions=1 + random.randint(0, 3),
                    streak_day=i < 12,
                )
            )

        print("Creating AI conversation...")
        conversation = AIConversation(user_id=demo.id, title="Study Planning Help")
        db.add(conversation)
        await db.flush()
        db.add(AIMessage(conversation_id=conversation.id, role="USER",
                         content="Can you help me create a study plan for learning React?"))
        db.add(AIMessage(conversation_id=conversation.id, role="ASSISTANT", content=PLAN_REPLY))

        await db.commit()

    await engine.dispose()
    print("Seed completed.")
    print(f"Demo login: {DEMO_USER['email']} / {DEMO_USER['password']}")


if __name__ == "__main__":
    asyncio.run(seed())
