from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .allowed_domains import DEFAULT_ALLOWED_DOMAINS, AllowedDomainsCache
from .models import FocusSession
from .urlmatch import extract_hostname, split_url, url_matches_any

INTERNAL_SCHEMES = (
    "chrome",
    "chrome-extension",
    "about",
    "edge",
    "brave",
    "opera",
    "vivaldi",
    "moz-extension",
    "file",
    "resource",
)


@dataclass
class BlockPolicy:
    """Block decisions against a live always-allowed domain cache."""

    allowed_domains: AllowedDomainsCache

    def should_block(self, url: str, session: Optional[FocusSession]) -> bool:
        return should_block(url, session, self.allowed_domains.domains)

    def blocked_message(self, url: str, session: FocusSession) -> str:
        return blocked_message(url, session)


def is_internal_url(url: str) -> bool:
    parts = split_url(url)
    if parts is None:
        return True
    scheme = parts.scheme.lower()
    return any(scheme.startswith(internal) for internal in INTERNAL_SCHEMES)


def is_app_url(url: str, allowed_domains: Iterable[str]) -> bool:
    host = extract_hostname(url)
    if not host:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in allowed_domains)


def should_block(
    url: str,
    session: Optional[FocusSession],
    allowed_domains: Iterable[str] = DEFAULT_ALLOWED_DOMAINS,
) -> bool:
    """Decide whether navigating to ``url`` breaks the session's rules.

    Inactive or missing sessions, browser-internal pages and the app's own
    domains are never blocked. An empty allowlist blocks everything, an
    empty blocklist nothing.
    """
    if session is None or session.status != "active":
        return False
    if is_internal_url(url):
        return False
    if is_app_url(url, allowed_domains):
        return False

    if not session.urls:
        return session.mode == "allowlist"

    matched = url_matches_any(url, session.urls)
    if session.mode == "allowlist":
        return not matched
    return matched


def blocked_message(url: str, session: FocusSession) -> str:
    host = extract_hostname(url) or url
    if session.mode == "allowlist":
        return f'"{host}" is not in your allowed sites list for this focus session.'
    return f'"{host}" is blocked during this focus session.'
