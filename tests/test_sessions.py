from datetime import datetime, timedelta, timezone

from focusflow.models import FocusSession
from focusflow.sessions import (
    SessionStore,
    actual_duration_minutes,
    effective_status,
    format_remaining_time,
    is_expired,
    remaining_time,
)

START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def test_remaining_time_is_clamped() -> None:
    assert remaining_time(START, 25, START + timedelta(minutes=10)) == timedelta(minutes=15)
    assert remaining_time(START, 25, START + timedelta(hours=2)) == timedelta(0)
    assert is_expired(START, 25, START + timedelta(minutes=25)) is True
    assert is_expired(START, 25, START + timedelta(minutes=24)) is False


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = START.replace(tzinfo=None)
    assert remaining_time(naive, 25, START + timedelta(minutes=5)) == timedelta(minutes=20)


def test_effective_status() -> None:
    session = FocusSession(mode="allowlist", duration_minutes=25, started_at=START)
    assert effective_status(session, START + timedelta(minutes=1)) == "active"
    assert effective_status(session, START + timedelta(minutes=30)) == "completed"
    stopped = session.model_copy(update={"status": "stopped"})
    assert effective_status(stopped, START + timedelta(minutes=30)) == "stopped"
    unstarted = FocusSession(mode="allowlist")
    assert effective_status(unstarted) == "active"


def test_format_remaining_time() -> None:
    assert format_remaining_time(timedelta(minutes=5, seconds=7)) == "5:07"
    assert format_remaining_time(timedelta(0)) == "0:00"
    assert format_remaining_time(timedelta(hours=1, minutes=2, seconds=3)) == "1:02:03"


def test_actual_duration_minutes() -> None:
    ended = FocusSession(
        mode="allowlist",
        started_at=START,
        ended_at=START + timedelta(minutes=12, seconds=59),
        status="stopped",
    )
    assert actual_duration_minutes(ended) == 12
    running = FocusSession(mode="allowlist", started_at=START)
    assert actual_duration_minutes(running, START + timedelta(minutes=3)) == 3
    assert actual_duration_minutes(FocusSession(mode="allowlist")) == 0


def test_store_reports_relevant_changes() -> None:
    store = SessionStore()
    first = FocusSession(id="a", mode="allowlist", urls=["x.test"])
    assert store.set(first) is True
    assert store.set(first.model_copy(update={"tab_switch_attempts": 3})) is False
    assert store.set(first.model_copy(update={"urls": ["y.test"]})) is True
    assert store.set(first.model_copy(update={"id": "b"})) is True
    assert store.set(None) is True
    assert store.set(None) is False


def test_store_applies_expiry() -> None:
    store = SessionStore()
    store.set(FocusSession(mode="blocklist", duration_minutes=25, started_at=START))
    current = store.current(START + timedelta(minutes=26))
    assert current is not None
    assert current.status == "completed"
    assert store.current(START + timedelta(minutes=1)).status == "active"
    store.clear()
    assert store.current() is None


def test_store_counts_attempts_on_stored_session() -> None:
    store = SessionStore()
    assert store.increment_attempts() == 0
    store.set(FocusSession(id="a", mode="allowlist", tab_switch_attempts=2))
    assert store.increment_attempts() == 3
    assert store.stored is not None
    assert store.stored.tab_switch_attempts == 3


def test_store_expire_and_stop() -> None:
    store = SessionStore()
    store.set(FocusSession(mode="blocklist", duration_minutes=25, started_at=START))
    assert store.remaining(START + timedelta(minutes=5)) == timedelta(minutes=20)
    assert store.expire(START + timedelta(minutes=5)) is None

    expired = store.expire(START + timedelta(minutes=30))
    assert expired is not None
    assert expired.status == "completed"
    assert expired.ended_at == START + timedelta(minutes=25)
    assert store.stop(START + timedelta(minutes=30)) is None

    stopped = store.stop(START + timedelta(minutes=5))
    assert stopped is not None
    assert stopped.status == "stopped"
    assert stopped.ended_at == START + timedelta(minutes=5)
    assert store.stored is not None
    assert store.stored.status == "active"
