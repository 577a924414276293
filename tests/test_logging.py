"""Tests for the package logger bootstrap."""

from __future__ import annotations

import logging

import menu_builder


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_configure_logging_writes_to_requested_directory(tmp_path):
    logger = menu_builder.configure_logging("menu_builder.tests.file_log", log_dir=tmp_path / "logs")
    try:
        logger.info("Created Choice Group 3 'Dressings'")
        for handler in logger.handlers:
            handler.flush()
        content = (tmp_path / "logs" / menu_builder.LOG_FILE_NAME).read_text(encoding="utf-8")
    finally:
        _close(logger)

    assert "| INFO | Created Choice Group 3 'Dressings'" in content


def test_console_handler_only_shows_warnings(tmp_path):
    logger = menu_builder.configure_logging("menu_builder.tests.console", log_dir=tmp_path)
    try:
        console = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert len(console) == 1
        assert console[0].level >= logging.WARNING
    finally:
        _close(logger)


def test_level_follows_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MENU_BUILDER_LOG_LEVEL", "debug")
    logger = menu_builder.configure_logging("menu_builder.tests.level", log_dir=tmp_path)
    try:
        assert logger.level == logging.DEBUG
    finally:
        _close(logger)


def test_configure_logging_is_idempotent(tmp_path):
    logger = menu_builder.configure_logging("menu_builder.tests.twice", log_dir=tmp_path)
    try:
        handlers = list(logger.handlers)
        assert menu_builder.configure_logging("menu_builder.tests.twice", log_dir=tmp_path) is logger
        assert logger.handlers == handlers
    finally:
        _close(logger)
