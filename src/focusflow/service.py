import os
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException

from .allowed_domains import AllowedDomainsCache
from .attempts import AttemptLog
from .config import Settings, load_config
from .log import configure_logging, get_logger
from .models import (
    AllowedDomainsResponse,
    CheckRequest,
    CheckResponse,
    FocusSession,
    NavigationRequest,
    NavigationResponse,
)
from .navigation import NavigationMonitor
from .policy import BlockPolicy
from .sessions import SessionStore

logger = get_logger(__name__)


def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings.log_level)

    cache = AllowedDomainsCache(
        endpoints=settings.allowed_domains.endpoints,
        defaults=settings.allowed_domains.defaults,
        ttl_s=settings.allowed_domains.cache_ttl_s,
        timeout_s=settings.allowed_domains.timeout_s,
    )
    policy = BlockPolicy(allowed_domains=cache)
    sessions = SessionStore()
    attempt_log = AttemptLog(Path(settings.attempts_path))
    monitor = NavigationMonitor(sessions, policy, attempt_logger=attempt_log)

    app = FastAPI(title="focusflow")
    app.state.settings = settings
    app.state.cache = cache
    app.state.policy = policy
    app.state.sessions = sessions
    app.state.attempt_log = attempt_log
    app.state.monitor = monitor

    def schedule_refresh(background_tasks: BackgroundTasks) -> None:
        if not cache.is_fresh():
            background_tasks.add_task(cache.refresh)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/config/allowed-domains", response_model=AllowedDomainsResponse)
    async def served_allowed_domains() -> AllowedDomainsResponse:
        return AllowedDomainsResponse(
            domains=settings.served_domains,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/v1/allowed-domains")
    async def cached_allowed_domains() -> dict:
        return {"domains": list(cache.domains), "fresh": cache.is_fresh()}

    @app.get("/v1/session")
    async def get_session() -> dict:
        monitor.check_expiry()
        session = sessions.current()
        return {"session": session.model_dump(mode="json") if session else None}

    @app.put("/v1/session")
    async def put_session(session: FocusSession) -> dict:
        blocked = monitor.update_session(session)
        logger.info("Session %s set (%s, %s)", session.id, session.mode, session.status)
        return {"status": "ok", "blocked_open_tabs": len(blocked)}

    @app.post("/v1/session/stop")
    async def stop_session() -> dict:
        monitor.check_expiry()
        stopped = monitor.stop_session()
        if stopped is None:
            raise HTTPException(status_code=404, detail="no active session")
        return {"status": "ok", "session": stopped.model_dump(mode="json")}

    @app.delete("/v1/session")
    async def delete_session() -> dict:
        if sessions.current() is None:
            raise HTTPException(status_code=404, detail="no session")
        monitor.update_session(None)
        return {"status": "ok"}

    @app.post("/v1/check", response_model=CheckResponse)
    async def check(
        payload: CheckRequest, background_tasks: BackgroundTasks
    ) -> CheckResponse:
        schedule_refresh(background_tasks)
        session = payload.session or sessions.current()
        blocked = policy.should_block(payload.url, session)
        message: Optional[str] = None
        if blocked and session is not None:
            message = policy.blocked_message(payload.url, session)
        return CheckResponse(blocked=blocked, message=message)

    @app.post("/v1/navigation", response_model=NavigationResponse)
    async def navigation(
        payload: NavigationRequest, background_tasks: BackgroundTasks
    ) -> NavigationResponse:
        schedule_refresh(background_tasks)
        monitor.check_expiry()
        decision = monitor.handle(payload.url, payload.event)
        return NavigationResponse(**asdict(decision))

    @app.get("/v1/attempts")
    async def attempts(session_id: Optional[str] = None) -> dict:
        records = attempt_log.read(session_id)
        return {"count": len(records), "attempts": records}

    return app


app = create_app(load_config(os.getenv("FOCUSFLOW_CONFIG")))
