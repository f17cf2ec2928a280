"""Logging setup for the monitoring service."""
from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, List


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure root logging with a deterministic format.

    Parameters
    ----------
    level
        Level name; unknown names fall back to INFO.
    json_format
        Emit one JSON object per line instead of ``asctime | level | name | message``.

    Notes
    -----
    Handlers installed by an earlier call are replaced, so calling this twice
    (e.g. from tests) does not duplicate output.
    """
    level_value = getattr(logging, str(level).upper(), logging.INFO)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level_value, handlers=handlers, force=True)


class _JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)
