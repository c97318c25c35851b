"""Tests for structured logging behavior."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
import unittest

import structlog

from agent_chat.logging_utils import configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        # Preserve root logger state so tests do not pollute each other.
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._original_handlers:
                handler.close()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _stream_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_structured_formatter_renders_extra_fields_as_json(self) -> None:
        configure_logging({"level": "DEBUG", "structured": True, "log_to_file": False})
        formatter = self._stream_handlers()[0].formatter
        self.assertIsInstance(formatter, structlog.stdlib.ProcessorFormatter)

        record = logging.LogRecord(
            name="agent_chat.agents",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="agent.changed",
            args=(),
            exc_info=None,
        )
        record.event = "agent.changed"
        record.from_agent = "auto"
        record.to_agent = "data"

        data = json.loads(formatter.format(record))
        self.assertEqual(data["event"], "agent.changed")
        self.assertEqual(data["from_agent"], "auto")
        self.assertEqual(data["to_agent"], "data")
        self.assertEqual(data["level"], "info")

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertFalse(
            any(isinstance(f, structlog.stdlib.ProcessorFormatter) for f in formatters)
        )

    def test_sets_root_level_and_keeps_terminal_quiet(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        self.assertEqual(logging.getLogger().level, logging.DEBUG)
        self.assertEqual(self._stream_handlers()[0].level, logging.WARNING)

    def test_noisy_loggers_set_to_warning(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        for name in ("httpx", "httpcore"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_file_handler_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "logs" / "app.log"
            configure_logging(
                {
                    "level": "DEBUG",
                    "structured": False,
                    "log_to_file": True,
                    "log_file_path": str(log_path),
                }
            )
            file_handlers = [
                h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertTrue(log_path.exists())
            file_handlers[0].close()

    def test_stderr_handler_filters_to_agent_chat(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        handler = self._stream_handlers()[0]
        app_record = logging.LogRecord(
            name="agent_chat.pipeline",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="ok",
            args=(),
            exc_info=None,
        )
        other_record = logging.LogRecord(
            name="httpx",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="noise",
            args=(),
            exc_info=None,
        )
        self.assertTrue(handler.filter(app_record))
        self.assertFalse(handler.filter(other_record))


if __name__ == "__main__":
    unittest.main()
