"""StudyStreak API."""
