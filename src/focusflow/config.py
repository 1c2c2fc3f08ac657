from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .allowed_domains import CACHE_TTL_S, DEFAULT_ALLOWED_DOMAINS, DEFAULT_ENDPOINTS


class AllowedDomainsConfig(BaseModel):
    endpoints: list[str] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    defaults: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_DOMAINS))
    cache_ttl_s: int = CACHE_TTL_S
    timeout_s: float = 5.0


class Settings(BaseModel):
    cdp_port: int = 9222
    cdp_allow_nat: bool = False
    cdp_timeout_ms: int = 5000
    slow_mo_ms: int = 0

    log_level: str = "INFO"
    attempts_path: str = "data/attempts.jsonl"
    served_domains: list[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "vercel.app",
            "flow.anshul.space",
            "anshul.space",
        ]
    )
    allowed_domains: AllowedDomainsConfig = Field(default_factory=AllowedDomainsConfig)


def load_config(path: Optional[str] = None) -> Settings:
    if not path:
        return Settings()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return Settings()
    data = yaml.safe_load(cfg_path.read_text()) or {}
    return Settings(**data)
