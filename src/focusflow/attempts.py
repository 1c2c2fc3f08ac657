from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dateutil import parser as date_parser

from .models import FocusSession, TabSwitchAttempt


class AttemptLog:
    """Append-only JSONL record of blocked navigation attempts."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def record(self, session: FocusSession, url: str) -> TabSwitchAttempt:
        attempt = TabSwitchAttempt(
            session_id=session.id,
            user_id=session.user_id,
            attempted_url=url,
            timestamp=datetime.now(timezone.utc),
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(attempt.model_dump(mode="json"), ensure_ascii=True))
            handle.write("\n")
        return attempt

    def __call__(self, session: FocusSession, url: str) -> None:
        self.record(session, url)

    def read(self, session_id: Optional[str] = None) -> list[dict]:
        if not self.path.exists():
            return []
        records = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if session_id is not None and record.get("session_id") != session_id:
                continue
            records.append(record)

        def sort_key(item: dict) -> float:
            stamp = item.get("timestamp")
            if not stamp:
                return 0.0
            try:
                return date_parser.parse(stamp).timestamp()
            except (ValueError, OverflowError):
                return 0.0

        records.sort(key=sort_key, reverse=True)
        return records

    def count(self, session_id: Optional[str] = None) -> int:
        return len(self.read(session_id))
