from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import SplitResult, urlsplit

SPECIAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*$")
_FORBIDDEN_HOST_CHARS = set(" \t\r\n#%/:<>?@[\\]^|")
_SPECIAL_PREFIX_RE = re.compile(r"^(https?|wss?|ftp):[\\/]*", re.IGNORECASE)


@dataclass(frozen=True)
class MatchEntry:
    hostname: str
    pathname: str
    full_url: str


def _valid_host(host: str) -> bool:
    if ":" in host:
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            return False
        return True
    return not any(ch in _FORBIDDEN_HOST_CHARS for ch in host)


def _normalize_special(url: str) -> str:
    # Browsers skip any run of slashes or backslashes after a special
    # scheme and read backslashes before the query as slashes.
    match = _SPECIAL_PREFIX_RE.match(url)
    if match is None:
        return url
    rest = url[match.end():]
    cut = len(rest)
    for sep in "?#":
        idx = rest.find(sep)
        if idx != -1:
            cut = min(cut, idx)
    rest = rest[:cut].replace("\\", "/") + rest[cut:]
    return f"{match.group(1)}://{rest}"


def split_url(url: str) -> Optional[SplitResult]:
    """Parse an absolute URL, returning None when it is not one.

    Mirrors what a browser accepts as an absolute URL closely enough for
    matching: a scheme is required, special schemes need a usable host and
    a numeric port.
    """
    try:
        parts = urlsplit(_normalize_special(url.strip()))
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    if not scheme or not _SCHEME_RE.match(scheme):
        return None
    host = parts.hostname or ""
    if scheme in SPECIAL_SCHEMES and not host:
        return None
    if host and not _valid_host(host):
        return None
    try:
        parts.port
    except ValueError:
        return None
    return parts


def parse_url_for_matching(url: str) -> Optional[MatchEntry]:
    url_to_parse = url if "://" in url else f"https://{url}"
    parts = split_url(url_to_parse)
    if parts is None:
        return None
    path = parts.path
    if not path and parts.scheme.lower() in SPECIAL_SCHEMES:
        path = "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return MatchEntry(
        hostname=(parts.hostname or "").lower(),
        pathname=path,
        full_url=url_to_parse.lower(),
    )


def extract_hostname(url: str) -> Optional[str]:
    parts = split_url(url)
    if parts is None or not parts.hostname:
        return None
    return parts.hostname.lower()


def normalize_hostname(hostname: str) -> str:
    hostname = hostname.lower()
    if hostname.startswith("www."):
        return hostname[4:]
    return hostname


def _strip_trailing_slash(value: str) -> str:
    return value[:-1] if value.endswith("/") else value


def hostname_matches(target: str, entry: str) -> bool:
    # Either side may be the subdomain of the other.
    return (
        target == entry
        or target.endswith("." + entry)
        or entry.endswith("." + target)
    )


def has_specific_path(entry: str) -> bool:
    parsed = parse_url_for_matching(entry)
    if parsed is None:
        return False
    return bool(_strip_trailing_slash(parsed.pathname)) or "?" in parsed.full_url


def url_matches_any(url: str, entries: Iterable[str]) -> bool:
    """Return True when ``url`` is covered by at least one list entry.

    An entry without a path covers every path on its host. An entry with a
    path (or a query) covers target paths that equal it or start with it.
    """
    target = parse_url_for_matching(url)
    if target is None:
        return False
    target_host = normalize_hostname(target.hostname)
    target_path = _strip_trailing_slash(target.pathname)

    for entry in entries:
        parsed = parse_url_for_matching(entry)
        if parsed is None:
            continue
        if not hostname_matches(target_host, normalize_hostname(parsed.hostname)):
            continue
        if not has_specific_path(entry):
            return True
        entry_path = _strip_trailing_slash(parsed.pathname)
        if target_path == entry_path or target_path.startswith(entry_path):
            return True
    return False
