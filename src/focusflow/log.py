import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: str = "INFO", stream: Optional[object] = None) -> None:
    root = logging.getLogger("focusflow")
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        if getattr(handler, "_focusflow", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._focusflow = True  # type: ignore[attr-defined]
    root.addHandler(handler)
