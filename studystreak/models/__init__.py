"""SQLAlchemy models for StudyStreak."""

from studystreak.models.user import User, UserPreference
from studystreak.models.task import Task
from studystreak.models.focus import FocusSession, UserAnalytics
from studystreak.models.social import Friendship, Challenge, ChallengeParticipant
from studystreak.models.achievement import Achievement, UserAchievement
from studystreak.models.ai import AIConversation, AIMessage

__all__ = [
    "User",
    "UserPreference",
    "Task",
    "FocusSession",
    "UserAnalytics",
    "Friendship",
    "Challenge",
    "ChallengeParticipant",
    "Achievement",
    "UserAchievement",
    "AIConversation",
    "AIMessage",
]
