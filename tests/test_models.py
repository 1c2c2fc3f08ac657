import pytest
from pydantic import ValidationError

from focusflow.models import CheckRequest, FocusSession, is_valid_url


def test_session_accepts_camel_case_keys() -> None:
    session = FocusSession(
        **{
            "id": "s1",
            "userId": "u1",
            "mode": "allowlist",
            "urls": ["docs.google.com"],
            "durationMinutes": 50,
            "startedAt": "2026-10-19T09:00:00Z",
            "endedAt": None,
            "status": "active",
            "tabSwitchAttempts": 2,
        }
    )
    assert session.user_id == "u1"
    assert session.duration_minutes == 50
    assert session.started_at is not None
    assert session.started_at.hour == 9
    assert session.tab_switch_attempts == 2


def test_session_defaults() -> None:
    session = FocusSession(mode="blocklist")
    assert session.urls == []
    assert session.status == "active"
    assert session.duration_minutes == 25


def test_session_rejects_unknown_mode_and_status() -> None:
    with pytest.raises(ValidationError):
        FocusSession(mode="greylist")
    with pytest.raises(ValidationError):
        FocusSession(mode="allowlist", status="paused")


def test_session_duration_bounds() -> None:
    FocusSession(mode="allowlist", duration_minutes=1)
    FocusSession(mode="allowlist", duration_minutes=480)
    with pytest.raises(ValidationError):
        FocusSession(mode="allowlist", duration_minutes=0)
    with pytest.raises(ValidationError):
        FocusSession(mode="allowlist", duration_minutes=481)


def test_check_request_session_is_optional() -> None:
    req = CheckRequest(url="https://example.com")
    assert req.session is None
    req = CheckRequest(**{"url": "https://example.com", "session": {"mode": "blocklist"}})
    assert req.session is not None
    assert req.session.mode == "blocklist"


def test_is_valid_url() -> None:
    assert is_valid_url("https://example.com/path") is True
    assert is_valid_url("http://localhost:3000") is True
    assert is_valid_url("ftp://example.com") is False
    assert is_valid_url("example.com") is False
    assert is_valid_url("   ") is False
    assert is_valid_url("") is False


def test_session_urls_are_cleaned() -> None:
    session = FocusSession(
        mode="blocklist",
        urls=[
            " youtube.com ",
            "youtube.com",
            "",
            "ftp://files.test",
            "https://docs.google.com",
            "not a url!!",
            "reddit.com/r/all",
        ],
    )
    assert session.urls == ["youtube.com", "https://docs.google.com", "reddit.com/r/all"]
