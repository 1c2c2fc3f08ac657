from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import FocusSession, SessionStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def remaining_time(
    started_at: datetime, duration_minutes: int, now: Optional[datetime] = None
) -> timedelta:
    now = _aware(now or _utc_now())
    end = _aware(started_at) + timedelta(minutes=duration_minutes)
    return max(timedelta(0), end - now)


def is_expired(
    started_at: datetime, duration_minutes: int, now: Optional[datetime] = None
) -> bool:
    return remaining_time(started_at, duration_minutes, now) == timedelta(0)


def effective_status(
    session: FocusSession, now: Optional[datetime] = None
) -> SessionStatus:
    """An active session whose time is up counts as completed."""
    if session.status != "active":
        return session.status
    if session.started_at and is_expired(session.started_at, session.duration_minutes, now):
        return "completed"
    return "active"


def format_remaining_time(remaining: timedelta) -> str:
    total_seconds = int(remaining.total_seconds())
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def actual_duration_minutes(
    session: FocusSession, now: Optional[datetime] = None
) -> int:
    if session.started_at is None:
        return 0
    end = session.ended_at or now or _utc_now()
    elapsed = _aware(end) - _aware(session.started_at)
    return int(elapsed.total_seconds() // 60)


class SessionStore:
    """Holds the current focus session handed over by the session provider."""

    def __init__(self) -> None:
        self._session: Optional[FocusSession] = None

    def set(self, session: Optional[FocusSession]) -> bool:
        previous = self._session
        self._session = session
        if session is None:
            return previous is not None
        if previous is None:
            return True
        return previous.id != session.id or previous.urls != session.urls

    def clear(self) -> None:
        self._session = None

    @property
    def stored(self) -> Optional[FocusSession]:
        """The session as last set, without expiry applied."""
        return self._session

    def increment_attempts(self) -> int:
        session = self._session
        if session is None:
            return 0
        count = session.tab_switch_attempts + 1
        self._session = session.model_copy(update={"tab_switch_attempts": count})
        return count

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        session = self._session
        if session is None or session.status != "active" or session.started_at is None:
            return None
        return remaining_time(session.started_at, session.duration_minutes, now)

    def expire(self, now: Optional[datetime] = None) -> Optional[FocusSession]:
        """Mark an active session whose time is up as completed.

        Returns the completed session, or None when nothing changed.
        """
        session = self._session
        if session is None or session.status != "active":
            return None
        if effective_status(session, now) == "active":
            return None
        ended_at = _aware(session.started_at) + timedelta(minutes=session.duration_minutes)
        return session.model_copy(update={"status": "completed", "ended_at": ended_at})

    def stop(self, now: Optional[datetime] = None) -> Optional[FocusSession]:
        session = self.current(now)
        if session is None or session.status != "active":
            return None
        return session.model_copy(
            update={"status": "stopped", "ended_at": _aware(now or _utc_now())}
        )

    def current(self, now: Optional[datetime] = None) -> Optional[FocusSession]:
        session = self._session
        if session is None:
            return None
        status = effective_status(session, now)
        if status != session.status:
            return session.model_copy(update={"status": status})
        return session
