"""Tests for structured logging"""

import json
import logging
import os
import sys
import unittest
from unittest.mock import patch

from pbhost_cli.structured_logging import (
    CommandContextFilter,
    JSONFormatter,
    is_json_logging_enabled,
    level_for_verbosity,
    setup_logging,
)


def _record(msg="Registered blog on port 8123", **extra):
    record = logging.LogRecord(
        name="pbhost.registry",
        level=logging.INFO,
        pathname="/path/to/registry.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter(unittest.TestCase):
    def setUp(self):
        self.formatter = JSONFormatter()

    def test_basic_log_formatting(self):
        data = json.loads(self.formatter.format(_record()))

        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["logger"], "pbhost.registry")
        self.assertEqual(data["message"], "Registered blog on port 8123")
        self.assertEqual(data["file"], "registry.py:42")
        self.assertIn("timestamp", data)
        self.assertNotIn("command", data)

    def test_command_and_extra_fields(self):
        data = json.loads(self.formatter.format(_record(command="add", project="blog", port=8123)))

        self.assertEqual(data["command"], "add")
        self.assertEqual(data["project"], "blog")
        self.assertEqual(data["port"], 8123)

    def test_exception_info(self):
        try:
            raise OSError("disk full")
        except OSError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(self.formatter.format(record))
        self.assertIn("OSError: disk full", data["exception"])

    def test_unserializable_extra(self):
        data = json.loads(self.formatter.format(_record(path=object())))
        self.assertIn("object", data["path"])


class TestLoggingSetup(unittest.TestCase):
    def test_json_flag(self):
        with patch.dict(os.environ, {"PBHOST_LOG_FORMAT": "JSON"}):
            self.assertTrue(is_json_logging_enabled())
        with patch.dict(os.environ, {"PBHOST_LOG_FORMAT": "text"}):
            self.assertFalse(is_json_logging_enabled())

    def test_level_for_verbosity(self):
        self.assertEqual(level_for_verbosity(0), "WARNING")
        self.assertEqual(level_for_verbosity(1), "INFO")
        self.assertEqual(level_for_verbosity(2), "DEBUG")
        self.assertEqual(level_for_verbosity(5), "DEBUG")

    def test_command_filter_does_not_override(self):
        record = _record(command="remove")
        CommandContextFilter("add").filter(record)
        self.assertEqual(record.command, "remove")


def test_setup_logging_writes_json_file(tmp_path, monkeypatch):
    log_file = tmp_path / "pbhost.log"
    monkeypatch.setenv("PBHOST_LOG_FORMAT", "json")
    monkeypatch.setenv("PBHOST_LOG_FILE", str(log_file))

    setup_logging(level="INFO", command="sync")
    logging.getLogger("pbhost.test").info("Synchronized route map", extra={"project": "blog"})

    lines = log_file.read_text(encoding="utf-8").strip().splitlines()
    data = json.loads(lines[-1])
    assert data["message"] == "Synchronized route map"
    assert data["command"] == "sync"
    assert data["project"] == "blog"


def test_setup_logging_level_from_environment(monkeypatch):
    monkeypatch.setenv("PBHOST_LOG_LEVEL", "debug")
    setup_logging()
    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_defaults_to_warning():
    setup_logging()
    assert logging.getLogger().level == logging.WARNING
