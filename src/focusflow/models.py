from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .urlmatch import parse_url_for_matching

SessionMode = Literal["allowlist", "blocklist"]
SessionStatus = Literal["active", "completed", "stopped"]
NavigationEventKind = Literal["before_navigate", "committed", "completed", "activated"]

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 480


class CamelModel(BaseModel):
    """Accepts both snake_case and the web app's camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FocusSession(CamelModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    mode: SessionMode
    urls: List[str] = Field(default_factory=list)
    duration_minutes: int = 25
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    status: SessionStatus = "active"
    tab_switch_attempts: int = 0

    @field_validator("urls")
    @classmethod
    def clean_urls(cls, urls: List[str]) -> List[str]:
        """Trim and dedupe entries, dropping ones that can never match.

        Entries with an explicit scheme must be http(s) URLs.
        """
        cleaned: List[str] = []
        for url in urls:
            url = url.strip()
            if not url or url in cleaned:
                continue
            if "://" in url and not is_valid_url(url):
                continue
            if parse_url_for_matching(url) is None:
                continue
            cleaned.append(url)
        return cleaned

    @model_validator(mode="after")
    def validate_duration(self) -> "FocusSession":
        if not is_valid_duration(self.duration_minutes):
            raise ValueError(
                f"duration_minutes must be between {MIN_DURATION_MINUTES} "
                f"and {MAX_DURATION_MINUTES}"
            )
        return self


class TabSwitchAttempt(CamelModel):
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    attempted_url: str
    timestamp: datetime


class CheckRequest(BaseModel):
    url: str
    session: Optional[FocusSession] = None


class CheckResponse(BaseModel):
    blocked: bool
    message: Optional[str] = None


class NavigationRequest(BaseModel):
    url: str
    event: NavigationEventKind = "committed"


class NavigationResponse(BaseModel):
    url: str
    event: str
    blocked: bool
    message: Optional[str] = None
    logged: bool = False


class AllowedDomainsResponse(BaseModel):
    domains: List[str]
    updated_at: str


def is_valid_url(url: str) -> bool:
    if not url or not url.strip():
        return False
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def is_valid_duration(minutes: int) -> bool:
    return MIN_DURATION_MINUTES <= minutes <= MAX_DURATION_MINUTES
