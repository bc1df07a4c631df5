"""Billing Logs: one root handler emitting JSON lines (or plain text locally).

Invariants:
    - Each line has timestamp, level, logger, and message
    - Transaction and service context travels as `extra=`: operation, error_code,
      batch_size, user_id, plan_id, path; other extras are dropped
    - Non-scalar extras (UUIDs, Decimals) are rendered with str()
    - setup_logging owns exactly one handler named "billing"; calling it again
      swaps that handler and leaves foreign handlers alone
"""

import logging
import json
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "operation", "error_code", "batch_size", "user_id", "plan_id", "path",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the billing extras that are set."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val if isinstance(val, (int, float, bool)) else str(val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the "billing" root handler at level, in json or text format."""
    handler = logging.StreamHandler()
    handler.set_name("billing")
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    for existing in list(logging.root.handlers):
        if existing.get_name() == "billing":
            logging.root.removeHandler(existing)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
