"""
Tests for structured logging.
"""

import io
import json
import logging

from trip_dialog.shared.logging.config import StructuredFormatter, log_state_transition, setup_logging


def _make_logger(name):
    """Create a logger writing JSON lines to an in-memory stream."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger(name)
    logger.handlers = [handler]
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger, stream


class TestStructuredLogging:
    """Tests for StructuredFormatter, setup_logging and log_state_transition."""

    def test_plain_record(self):
        """Ordinary records become one JSON object."""
        logger, stream = _make_logger("trip_dialog.tests.plain")
        logger.info("hello")
        entry = json.loads(stream.getvalue())
        assert entry["level"] == "INFO"
        assert entry["message"] == "hello"
        assert "extra" not in entry

    def test_state_transition(self):
        """State transitions carry a summary of the committed state."""
        logger, stream = _make_logger("trip_dialog.tests.transition")
        state = {
            "session_id": "s1",
            "phase": "planning",
            "current_plan": {"destinations": [{"city": "Paris", "days": 5}], "total_days": 5},
            "metadata": {"message_count": 2},
        }
        log_state_transition("turn_committed", state, extra={"intent": "new_plan"}, logger=logger)

        entry = json.loads(stream.getvalue())
        assert entry["message"] == "State transition: turn_committed"
        assert entry["extra"]["event"] == "turn_committed"
        assert entry["extra"]["state_summary"] == {
            "session_id": "s1",
            "phase": "planning",
            "destinations": ["Paris"],
            "total_days": 5,
            "message_count": 2,
        }
        assert entry["extra"]["extra"] == {"intent": "new_plan"}

    def test_setup_logging(self, tmp_path):
        """setup_logging routes the package logger through the JSON formatter."""
        log_file = tmp_path / "trip_dialog.log"
        logger = setup_logging(log_file=str(log_file))
        try:
            assert logger.name == "trip_dialog"
            assert logger.propagate is False
            assert all(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers)
            logger.info("written")
            for handler in logger.handlers:
                handler.flush()
            assert json.loads(log_file.read_text().strip())["message"] == "written"
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers = []
            logger.propagate = True
