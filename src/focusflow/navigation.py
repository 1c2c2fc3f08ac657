from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from .log import get_logger
from .models import FocusSession
from .policy import BlockPolicy
from .sessions import SessionStore, _utc_now

logger = get_logger(__name__)

BEFORE_NAVIGATE = "before_navigate"
COMMITTED = "committed"
COMPLETED = "completed"
ACTIVATED = "activated"

INDICATOR_EVENTS = {COMMITTED, COMPLETED, ACTIVATED}
LOGGED_EVENTS = {COMMITTED}

AttemptLogger = Callable[[FocusSession, str], None]


@dataclass
class NavigationDecision:
    url: str
    event: str
    blocked: bool
    message: Optional[str] = None
    logged: bool = False


Listener = Callable[[NavigationDecision], None]


class NavigationMonitor:
    """Routes navigation events through the block policy.

    Blocked decisions for indicator events go to subscribed listeners.
    Attempts are logged once per committed navigation, except for URLs
    that were already open when the session started.
    """

    def __init__(
        self,
        sessions: SessionStore,
        policy: BlockPolicy,
        attempt_logger: Optional[AttemptLogger] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.sessions = sessions
        self.policy = policy
        self.attempt_logger = attempt_logger
        self._clock = clock
        self._listeners: List[Listener] = []
        self._session_end_listeners: List[Callable[[], None]] = []
        self._pre_opened: set[str] = set()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_session_end(self, callback: Callable[[], None]) -> None:
        self._session_end_listeners.append(callback)

    @property
    def pre_opened(self) -> frozenset[str]:
        return frozenset(self._pre_opened)

    def decide(self, url: str, event: str = COMMITTED) -> NavigationDecision:
        session = self.sessions.current(self._clock())
        blocked = self.policy.should_block(url, session)
        message = None
        if blocked and session is not None:
            message = self.policy.blocked_message(url, session)
        return NavigationDecision(url=url, event=event, blocked=blocked, message=message)

    def handle(self, url: str, event: str = COMMITTED) -> NavigationDecision:
        decision = self.decide(url, event)
        if not decision.blocked:
            return decision

        logger.info("Blocking %s navigation to %s", event, url)
        if event in LOGGED_EVENTS and url not in self._pre_opened:
            decision.logged = self._log_attempt(url)
        if event in INDICATOR_EVENTS:
            self._notify(decision)
        return decision

    def scan_open_tabs(self, urls: Iterable[str]) -> List[NavigationDecision]:
        self._pre_opened.clear()
        blocked = []
        for url in urls:
            if not url:
                continue
            decision = self.decide(url, ACTIVATED)
            if not decision.blocked:
                continue
            logger.info("Blocking already open tab: %s", url)
            self._pre_opened.add(url)
            self._notify(decision)
            blocked.append(decision)
        return blocked

    def update_session(
        self, session: Optional[FocusSession], open_urls: Iterable[str] = ()
    ) -> List[NavigationDecision]:
        previous = self.sessions.stored
        changed = self.sessions.set(session)
        if session is None or session.status != "active":
            self._pre_opened.clear()
            if previous is not None and previous.status == "active":
                self._notify_session_end()
            return []
        if changed:
            return self.scan_open_tabs(open_urls)
        return []

    def check_expiry(self) -> bool:
        """Complete the stored session once its time is up.

        Session end listeners fire on the transition only, so repeated
        calls after expiry return False.
        """
        expired = self.sessions.expire(self._clock())
        if expired is None:
            return False
        logger.info("Session %s ran out of time", expired.id)
        self.update_session(expired)
        return True

    def stop_session(self) -> Optional[FocusSession]:
        stopped = self.sessions.stop(self._clock())
        if stopped is None:
            return None
        logger.info("Session %s stopped", stopped.id)
        self.update_session(stopped)
        return stopped

    def seconds_until_expiry(self) -> Optional[float]:
        remaining = self.sessions.remaining(self._clock())
        if remaining is None:
            return None
        return remaining.total_seconds()

    def _log_attempt(self, url: str) -> bool:
        session = self.sessions.current(self._clock())
        if self.attempt_logger is None or session is None:
            return False
        try:
            self.attempt_logger(session, url)
        except Exception:
            logger.exception("Failed to log blocked attempt for %s", url)
            return False
        self.sessions.increment_attempts()
        return True

    def _notify(self, decision: NavigationDecision) -> None:
        for listener in list(self._listeners):
            try:
                listener(decision)
            except Exception:
                logger.exception("Navigation listener failed for %s", decision.url)

    def _notify_session_end(self) -> None:
        for callback in list(self._session_end_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Session end callback failed")
