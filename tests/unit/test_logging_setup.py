"""
Unit tests for ecomoni.logging_setup.configure_logging.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator

import pytest

from ecomoni.logging_setup import _JsonFormatter, configure_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_sets_level_and_single_handler(restore_root_logger) -> None:
    """Repeated calls replace the handler instead of stacking them."""
    configure_logging("debug")
    configure_logging("warning")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_unknown_level_falls_back_to_info(restore_root_logger) -> None:
    configure_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_plain_format(restore_root_logger, capsys) -> None:
    """Plain lines are 'asctime | level | name | message'."""
    configure_logging("INFO")
    logging.getLogger("ecomoni.test").info("hello %s", "world")

    out = capsys.readouterr().out.strip().splitlines()[-1]
    assert out.endswith("| INFO | ecomoni.test | hello world")


def test_json_formatter_fields() -> None:
    """One JSON object per record with ts, level, name, msg."""
    record = logging.LogRecord("ecomoni.x", logging.ERROR, __file__, 1, "boom %d", (3,), None)
    data = json.loads(_JsonFormatter().format(record))

    assert data["level"] == "ERROR"
    assert data["name"] == "ecomoni.x"
    assert data["msg"] == "boom 3"
    assert "ts" in data
