from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

LOG_LEVEL_ENV = "MEDIA_BUDGET_LOG_LEVEL"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def default_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, "INFO")


def setup_logging(level: str | None = None, json_output: bool = False) -> None:
    """Install a single stderr handler on the root logger."""
    level = level or default_log_level()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # stderr, so JSON printed on stdout by the CLI stays parseable
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    root.handlers = [handler]
