import asyncio
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Frame,
    Page,
    Playwright,
    async_playwright,
)

from .cdp_endpoints import select_cdp_endpoint
from .config import Settings
from .log import get_logger
from .models import FocusSession
from .navigation import COMMITTED, COMPLETED, NavigationDecision, NavigationMonitor

logger = get_logger(__name__)

OVERLAY_ID = "focusflow-blocking-overlay"

OVERLAY_SCRIPT = """
(args) => {
  const [id, message] = args;
  let overlay = document.getElementById(id);
  if (!overlay) {
    overlay = document.createElement('div');
    overlay.id = id;
    overlay.style.cssText = [
      'position:fixed', 'inset:0', 'z-index:2147483647',
      'display:flex', 'align-items:center', 'justify-content:center',
      'background:rgba(15,15,20,0.96)', 'color:#fff',
      'font:18px/1.5 system-ui,sans-serif', 'text-align:center', 'padding:2rem'
    ].join(';');
    (document.body || document.documentElement).appendChild(overlay);
  }
  overlay.textContent = message;
}
"""

REMOVE_OVERLAY_SCRIPT = """
(id) => {
  const overlay = document.getElementById(id);
  if (overlay) overlay.remove();
}
"""


class BrowserGuard:
    """Feeds page navigations of a live browser into a NavigationMonitor.

    Every main-frame navigation is checked; blocked pages get an overlay
    carrying the blocked-reason message.
    """

    def __init__(self, monitor: NavigationMonitor) -> None:
        self.monitor = monitor
        self._pages: list[Page] = []
        self._tasks: set[asyncio.Task] = set()
        monitor.on_session_end(self._schedule_clear)

    @property
    def pages(self) -> list[Page]:
        return [page for page in self._pages if not page.is_closed()]

    def attach_browser(self, browser: Browser) -> None:
        for context in browser.contexts:
            self.attach_context(context)

    def attach_context(self, context: BrowserContext) -> None:
        for page in context.pages:
            self.attach_page(page)
        context.on("page", self.attach_page)

    def attach_page(self, page: Page) -> None:
        if page in self._pages:
            return
        self._pages.append(page)

        async def on_frame_navigated(frame: Frame) -> None:
            if frame != page.main_frame:
                return
            await self._check(page, frame.url, COMMITTED)

        async def on_load(_page: Page) -> None:
            await self._check(page, page.url, COMPLETED)

        page.on("framenavigated", on_frame_navigated)
        page.on("load", on_load)
        page.on("close", self._forget)

    async def scan(self) -> list[NavigationDecision]:
        by_url: dict[str, list[Page]] = {}
        for page in self.pages:
            by_url.setdefault(page.url, []).append(page)
        decisions = self.monitor.scan_open_tabs(by_url.keys())
        for decision in decisions:
            for page in by_url.get(decision.url, []):
                await show_overlay(page, decision.message or "")
        return decisions

    async def clear_overlays(self) -> None:
        for page in self.pages:
            await remove_overlay(page)

    async def _check(self, page: Page, url: str, event: str) -> NavigationDecision:
        decision = self.monitor.handle(url, event)
        if decision.blocked:
            await show_overlay(page, decision.message or "")
        return decision

    def _forget(self, page: Page) -> None:
        if page in self._pages:
            self._pages.remove(page)

    def _schedule_clear(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.clear_overlays())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


async def connect_browser(playwright: Playwright, settings: Settings) -> Browser:
    endpoint, version = select_cdp_endpoint(
        settings.cdp_port,
        allow_nat=settings.cdp_allow_nat,
        timeout_s=settings.cdp_timeout_ms / 1000.0,
    )
    logger.info("CDP endpoint selected: %s", endpoint)
    if version:
        logger.info("CDP version: %s", version.get("Browser"))
    return await playwright.chromium.connect_over_cdp(
        endpoint_url=endpoint,
        timeout=settings.cdp_timeout_ms,
        slow_mo=settings.slow_mo_ms,
    )


async def watch_session(monitor: NavigationMonitor, stop: asyncio.Event) -> None:
    """Refresh the always-allowed cache and end the session on time.

    Wakes at the cache TTL or at session expiry, whichever comes first, and
    returns once ``stop`` is set or the session has run out.
    """
    cache = monitor.policy.allowed_domains
    while not stop.is_set():
        if monitor.check_expiry():
            return
        timeout = float(cache.ttl_s)
        remaining = monitor.seconds_until_expiry()
        if remaining is not None:
            timeout = max(0.0, min(timeout, remaining))
        try:
            await asyncio.wait_for(stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            if not cache.is_fresh():
                await cache.refresh()


async def run_guard(
    settings: Settings,
    monitor: NavigationMonitor,
    session: FocusSession,
    stop: Optional[asyncio.Event] = None,
) -> None:
    """Guard a CDP-connected browser until ``stop`` is set or the session ends."""
    cache = monitor.policy.allowed_domains
    stop = stop or asyncio.Event()
    async with async_playwright() as playwright:
        browser = await connect_browser(playwright, settings)
        guard = BrowserGuard(monitor)
        try:
            await cache.refresh()
            guard.attach_browser(browser)
            monitor.update_session(session)
            await guard.scan()
            await watch_session(monitor, stop)
        finally:
            await guard.clear_overlays()
            await browser.close()


async def show_overlay(page: Page, message: str) -> bool:
    try:
        await page.evaluate(OVERLAY_SCRIPT, [OVERLAY_ID, message])
    except PlaywrightError as exc:
        logger.debug("Could not show overlay on %s: %s", page.url, exc)
        return False
    return True


async def remove_overlay(page: Page) -> bool:
    try:
        await page.evaluate(REMOVE_OVERLAY_SCRIPT, OVERLAY_ID)
    except PlaywrightError as exc:
        logger.debug("Could not remove overlay on %s: %s", page.url, exc)
        return False
    return True
