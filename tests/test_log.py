"""Tests for the pluggable logger."""

import logging
import os

from runtime_metrics.log import DefaultLogger, Logger, LoggingLogger


def test_implementations_satisfy_protocol(recording_logger):
    assert isinstance(DefaultLogger(), Logger)
    assert isinstance(LoggingLogger(), Logger)
    assert isinstance(recording_logger, Logger)


def test_default_logger_info_is_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="runtime_metrics.log"):
        DefaultLogger().info("point", 1)
    assert caplog.records[-1].levelno == logging.DEBUG
    assert caplog.records[-1].getMessage() == "point 1"


def test_default_logger_info_renders_lazily(caplog):
    class Rendered:
        calls = 0

        def __str__(self):
            Rendered.calls += 1
            return "line"

    with caplog.at_level(logging.INFO, logger="runtime_metrics.log"):
        DefaultLogger().info(Rendered())
    assert Rendered.calls == 0
    with caplog.at_level(logging.DEBUG, logger="runtime_metrics.log"):
        DefaultLogger().info(Rendered())
    assert Rendered.calls == 1


def test_default_logger_fatal_exits(monkeypatch):
    exits = []
    monkeypatch.setattr(os, "_exit", exits.append)
    monkeypatch.setattr(logging, "shutdown", lambda: None)
    DefaultLogger().fatal("boom")
    assert exits == [1]


def test_logging_logger_does_not_exit(caplog, monkeypatch):
    monkeypatch.setattr(os, "_exit", lambda code: (_ for _ in ()).throw(AssertionError("exited")))
    log = LoggingLogger("runtime_metrics.test")
    with caplog.at_level(logging.INFO, logger="runtime_metrics.test"):
        log.info("hello")
        log.fatal("write failed")
    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.ERROR]
