"""
JSONL logging bootstrap.

One JSON object per line in a single file sink, installed at CLI startup.
Records emitted while a launch session is active carry its token id under
"session".
"""

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC
from datetime import datetime
from pathlib import Path

LOG_PATH_ENV = "UNVCPFL_LOG_PATH"
LOG_LEVEL_ENV = "UNVCPFL_LOG_LEVEL"

current_session_id: ContextVar[str | None] = ContextVar("current_session_id", default=None)

# Standard LogRecord attributes that are not copied into the payload as extras
_RESERVED_ATTRS = frozenset(
    (
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "name",
        "taskName",
    )
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            base = {
                "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "schema": {"name": "unvcpfl.log", "ver": "1.0.0"},
                "logger": record.name,
                "event": getattr(record, "event", None),
                "session": current_session_id.get(),
                "message": record.getMessage(),
            }
            if record.exc_info:
                base["exc"] = logging.Formatter().formatException(record.exc_info)
            for k, v in record.__dict__.items():
                if k in _RESERVED_ATTRS:
                    continue
                base.setdefault(k, v)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(base, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def init_json_logging(path: str | Path | None = None, level: str | None = None) -> Path:
    """Install the JSONL handler on the root logger.

    Environment variables win over the arguments, which come from settings.

    Returns:
        Path of the log file
    """
    from .paths import get_default_log_path

    log_path = Path(os.environ.get(LOG_PATH_ENV) or path or get_default_log_path())
    level_name = (os.environ.get(LOG_LEVEL_ENV) or level or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    # Remove existing handlers of the same kind to avoid duplicates
    for h in list(root.handlers):
        if isinstance(h, JsonlHandler):
            root.removeHandler(h)
            h.close()
    root.addHandler(JsonlHandler(log_path))
    return log_path
