"""Structured Logging — one JSON object per line for the ConXion API.

Invariants:
    - Every line carries timestamp (record time, UTC), level, logger, and message
    - Request context passed through `extra=` (user_id, mode, attempt, ...) is
      copied to the top level; ids are stringified, counters stay numeric
    - setup_logging() installs exactly one ConXion handler, however often it runs

Design Decisions:
    - `mode` is the field to filter on when tracing schema drift: every
      reference and sync write logs which writer (v2, legacy, compat_*) ran
    - SQLAlchemy engine chatter stays at WARNING unless the root level is DEBUG
"""

import logging
import json
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "user_id", "error_code", "path", "mode", "attempt", "reference_id",
)

_HANDLER_NAME = "conxion"


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = str(val) if not isinstance(val, (int, float)) else val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Route all loggers to stderr as JSON (or plain text when fmt != "json")."""
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(mode)s]: %(message)s",
            defaults={"mode": "-"},
        ))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(root_level)
    if root_level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
