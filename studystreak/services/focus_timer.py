"""Pomodoro countdown state machine.

Three modes (focus, short break, long break). After every
`long_break_interval` completed focus intervals the next break is a long
one; every break is followed by focus.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TimerMode(str, Enum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


@dataclass(frozen=True)
class TimerSettings:
    focus: int = 25
    short_break: int = 5
    long_break: int = 15
    long_break_interval: int = 4

    @classmethod
    def from_preferences(cls, prefs) -> "TimerSettings":
        if prefs is None:
            return cls()
        return cls(
            focus=prefs.focus_duration,
            short_break=prefs.short_break_duration,
            long_break=prefs.long_break_duration,
            long_break_interval=prefs.long_break_interval,
        )

    def minutes_for(self, mode: TimerMode) -> int:
        if mode is TimerMode.FOCUS:
            return self.focus
        if mode is TimerMode.SHORT_BREAK:
            return self.short_break
        return self.long_break


def mode_after(mode: TimerMode, completed_sessions: int, long_break_interval: int) -> TimerMode:
    """Mode that follows `mode`; completed_sessions already counts a just-finished focus."""
    if mode is not TimerMode.FOCUS:
        return TimerMode.FOCUS
    if completed_sessions > 0 and completed_sessions % long_break_interval == 0:
        return TimerMode.LONG_BREAK
    return TimerMode.SHORT_BREAK


@dataclass
class FocusTimer:
    settings: TimerSettings = field(default_factory=TimerSettings)
    mode: TimerMode = TimerMode.FOCUS
    completed_sessions: int = 0
    is_active: bool = False
    time_left: int = field(init=False)

    def __post_init__(self) -> None:
        self.time_left = self.total_seconds

    @property
    def total_seconds(self) -> int:
        return self.settings.minutes_for(self.mode) * 60

    def start(self) -> None:
        self.is_active = True

    def pause(self) -> None:
        self.is_active = False

    def toggle(self) -> None:
        self.is_active = not self.is_active

    def reset(self) -> None:
        self.is_active = False
        self.time_left = self.total_seconds

    def set_mode(self, mode: TimerMode) -> None:
        self.mode = mode
        self.reset()

    def tick(self, seconds: int = 1) -> bool:
        """Count down while running. Returns True when an interval finished."""
        if not self.is_active or seconds <= 0:
            return False
        self.time_left = max(0, self.time_left - seconds)
        if self.time_left == 0:
            self._complete()
            return True
        return False

    def skip(self) -> None:
        self._complete()

    def progress(self) -> float:
        total = self.total_seconds
        if total == 0:
            return 100.0
        return round((total - self.time_left) / total * 100, 1)

    def _complete(self) -> None:
        if self.mode is TimerMode.FOCUS:
            self.completed_sessions += 1
        self.set_mode(mode_after(self.mode, self.completed_sessions, self.settings.long_break_interval))


def plan_next_interval(settings: TimerSettings, completed_today: int, on_break: bool = False) -> dict:
    """Interval the timer should load next given today's completed focus sessions.

    `on_break` is true when the most recent event was a finished focus interval
    whose break has not been taken yet.
    """
    interval = settings.long_break_interval
    if on_break and completed_today > 0:
        mode = mode_after(TimerMode.FOCUS, completed_today, interval)
    else:
        mode = TimerMode.FOCUS
    done_in_cycle = completed_today % interval
    return {
        "mode": mode.value,
        "duration_minutes": settings.minutes_for(mode),
        "completed_today": completed_today,
        "sessions_until_long_break": interval - done_in_cycle if done_in_cycle else interval,
    }
