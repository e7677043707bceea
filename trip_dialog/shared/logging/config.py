"""
JSON logging for the trip dialog service.

main.py switches the package loggers to StructuredFormatter when
TRIP_DIALOG_LOG_FORMAT=json; log_state_transition records every
committed turn and undo.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


PACKAGE_LOGGER = "trip_dialog"


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; state transitions carry their summary under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra"):
            entry["extra"] = record.extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Route the package loggers through StructuredFormatter, to stdout and optionally log_file."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger


def log_state_transition(
    event: str,
    state: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a conversation state transition event.

    Args:
        event: Name of the event (e.g., "turn_committed", "plan_undone")
        state: Conversation state as a dictionary (key fields are extracted)
        extra: Additional context to include in the log
        logger: Logger instance to use. If not provided, uses default.
    """
    if logger is None:
        logger = logging.getLogger(PACKAGE_LOGGER)

    plan = state.get("current_plan") or {}
    metadata = state.get("metadata") or {}
    state_summary = {
        "session_id": state.get("session_id"),
        "phase": state.get("phase"),
        "destinations": [d.get("city") for d in plan.get("destinations", [])],
        "total_days": plan.get("total_days"),
        "message_count": metadata.get("message_count"),
    }

    log_data = {
        "event": event,
        "state_summary": state_summary,
    }

    if extra:
        log_data["extra"] = extra

    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        "",
        0,
        f"State transition: {event}",
        args=(),
        exc_info=None,
    )
    record.extra = log_data

    logger.handle(record)
