"""Structured logging setup tests."""

from __future__ import annotations

import logging

from cspbuilder.logging_config import _rename_logger_to_module, setup_logging


def test_setup_logging_sets_level():
    setup_logging(log_level="warning", json_format=True)
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_unknown_level_falls_back_to_info():
    setup_logging(log_level="chatty", json_format=False)
    assert logging.getLogger().level == logging.INFO


def test_logger_renamed_to_module():
    event = _rename_logger_to_module(None, "info", {"event": "x", "logger": "cspbuilder.core.policy"})
    assert event == {"event": "x", "module": "cspbuilder.core.policy"}

