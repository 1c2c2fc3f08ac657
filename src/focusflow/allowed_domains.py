from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

import httpx

from .log import get_logger

logger = get_logger(__name__)

ALLOWED_DOMAINS_PATH = "/api/config/allowed-domains"

DEFAULT_ALLOWED_DOMAINS: Tuple[str, ...] = (
    "localhost",
    "127.0.0.1",
    "vercel.app",
    "anshul.space",
)

DEFAULT_ENDPOINTS: Tuple[str, ...] = (
    f"http://localhost:3001{ALLOWED_DOMAINS_PATH}",
    f"http://localhost:3000{ALLOWED_DOMAINS_PATH}",
    f"https://flow.anshul.space{ALLOWED_DOMAINS_PATH}",
)

CACHE_TTL_S = 5 * 60


def normalize_domains(domains: Iterable[str]) -> Tuple[str, ...]:
    return tuple(d.strip().lower() for d in domains if d and d.strip())


def parse_domains_payload(payload: Any) -> Optional[Tuple[str, ...]]:
    if not isinstance(payload, dict):
        return None
    domains = payload.get("domains")
    if not isinstance(domains, list):
        return None
    if not all(isinstance(d, str) for d in domains):
        return None
    normalized = normalize_domains(domains)
    return normalized or None


class AllowedDomainsCache:
    """Always-allowed application domains with a time-bounded refresh.

    ``domains`` is a tuple replaced in a single assignment, so a reader sees
    either the old or the new list. ``refresh`` never raises; on total
    failure the previous value (the defaults on first run) stays in place.
    """

    def __init__(
        self,
        endpoints: Sequence[str] = DEFAULT_ENDPOINTS,
        defaults: Iterable[str] = DEFAULT_ALLOWED_DOMAINS,
        ttl_s: float = CACHE_TTL_S,
        timeout_s: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.endpoints = list(endpoints)
        self.ttl_s = ttl_s
        self.timeout_s = timeout_s
        self._transport = transport
        self._clock = clock
        self._domains: Tuple[str, ...] = normalize_domains(defaults)
        self._last_fetch: Optional[float] = None

    @property
    def domains(self) -> Tuple[str, ...]:
        return self._domains

    @property
    def last_fetch(self) -> Optional[float]:
        return self._last_fetch

    def is_fresh(self) -> bool:
        if self._last_fetch is None:
            return False
        return self._clock() - self._last_fetch < self.ttl_s

    async def refresh(self, force: bool = False) -> Tuple[str, ...]:
        if not force and self.is_fresh() and self._domains:
            return self._domains

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self._transport
            ) as client:
                for endpoint in self.endpoints:
                    domains = await _fetch_domains(client, endpoint)
                    if domains is None:
                        continue
                    self._domains = domains
                    self._last_fetch = self._clock()
                    logger.info("Fetched allowed domains from %s: %s", endpoint, domains)
                    return domains
        except Exception as exc:
            logger.warning("Allowed domains refresh failed: %s", exc)
            return self._domains

        logger.warning(
            "No allowed-domains endpoint answered, keeping %s", self._domains
        )
        return self._domains


async def _fetch_domains(
    client: httpx.AsyncClient, endpoint: str
) -> Optional[Tuple[str, ...]]:
    try:
        resp = await client.get(endpoint)
    except httpx.HTTPError as exc:
        logger.debug("Allowed domains fetch from %s failed: %s", endpoint, exc)
        return None
    if not resp.is_success:
        logger.debug("Allowed domains endpoint %s returned %s", endpoint, resp.status_code)
        return None
    try:
        payload = resp.json()
    except ValueError:
        logger.debug("Allowed domains endpoint %s returned invalid JSON", endpoint)
        return None
    domains = parse_domains_payload(payload)
    if domains is None:
        logger.debug("Allowed domains endpoint %s returned an unusable payload", endpoint)
    return domains
