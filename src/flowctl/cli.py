import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from focusflow.allowed_domains import AllowedDomainsCache
from focusflow.attempts import AttemptLog
from focusflow.browser_guard import run_guard
from focusflow.config import load_config
from focusflow.log import configure_logging
from focusflow.models import FocusSession
from focusflow.navigation import NavigationMonitor
from focusflow.policy import BlockPolicy
from focusflow.sessions import SessionStore


def _print_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=True))
    sys.stdout.write("\n")


def _load_session(
    session_file: Optional[str], session_json: Optional[str]
) -> Optional[dict]:
    if session_file:
        return json.loads(Path(session_file).read_text(encoding="utf-8"))
    if session_json:
        return json.loads(session_json)
    return None


def health(base_url: str) -> int:
    try:
        resp = httpx.get(f"{base_url}/health", timeout=5)
        resp.raise_for_status()
        _print_json(resp.json())
        return 0
    except httpx.HTTPError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1


def check(base_url: str, url: str, session: Optional[dict]) -> int:
    payload: dict = {"url": url}
    if session is not None:
        payload["session"] = session
    try:
        resp = httpx.post(f"{base_url}/v1/check", json=payload, timeout=10)
        resp.raise_for_status()
        _print_json(resp.json())
        return 0
    except httpx.HTTPError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1


def domains(base_url: str) -> int:
    try:
        resp = httpx.get(f"{base_url}/v1/allowed-domains", timeout=5)
        resp.raise_for_status()
        _print_json(resp.json())
        return 0
    except httpx.HTTPError as exc:
        _print_json({"status": "error", "error": str(exc)})
        return 1


def guard(config_path: Optional[str], session: dict) -> int:
    settings = load_config(config_path)
    configure_logging(settings.log_level)
    try:
        focus_session = FocusSession.model_validate(session)
    except ValidationError as exc:
        _print_json({"status": "error", "error": f"Invalid session: {exc}"})
        return 1

    cache = AllowedDomainsCache(
        endpoints=settings.allowed_domains.endpoints,
        defaults=settings.allowed_domains.defaults,
        ttl_s=settings.allowed_domains.cache_ttl_s,
        timeout_s=settings.allowed_domains.timeout_s,
    )
    monitor = NavigationMonitor(
        SessionStore(),
        BlockPolicy(allowed_domains=cache),
        attempt_logger=AttemptLog(Path(settings.attempts_path)),
    )
    try:
        asyncio.run(run_guard(settings, monitor, focus_session))
    except KeyboardInterrupt:
        pass
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(prog="flowctl")
    parser.add_argument(
        "--base-url",
        default="http://127.0.0.1:7600",
        help="Base URL for the focusflow service",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check service health")
    subparsers.add_parser("domains", help="Show the cached always-allowed domains")

    check_parser = subparsers.add_parser("check", help="Ask whether a URL is blocked")
    check_parser.add_argument("--url", required=True)
    check_parser.add_argument("--session-file", help="Path to a session JSON file")
    check_parser.add_argument("--session-json", help="Inline session JSON")

    guard_parser = subparsers.add_parser(
        "guard", help="Enforce a session in a browser reachable over CDP"
    )
    guard_parser.add_argument("--config", help="Path to a YAML config file")
    guard_parser.add_argument("--session-file", help="Path to a session JSON file")
    guard_parser.add_argument("--session-json", help="Inline session JSON")

    args = parser.parse_args()

    if args.command == "health":
        raise SystemExit(health(args.base_url))
    if args.command == "domains":
        raise SystemExit(domains(args.base_url))

    try:
        session = _load_session(args.session_file, args.session_json)
    except (OSError, json.JSONDecodeError) as exc:
        _print_json({"status": "error", "error": f"Invalid JSON: {exc}"})
        raise SystemExit(1)

    if args.command == "check":
        raise SystemExit(check(args.base_url, args.url, session))
    if args.command == "guard":
        if session is None:
            _print_json({"status": "error", "error": "Provide --session-file or --session-json"})
            raise SystemExit(1)
        raise SystemExit(guard(args.config, session))


if __name__ == "__main__":
    main()
