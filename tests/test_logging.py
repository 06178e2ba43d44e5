"""Tests for logging configuration."""

import logging

import pytest
import structlog

from invoice_desk.config import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def _renderer():
    formatter = logging.getLogger().handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


def test_json_renderer():
    configure_logging(level="DEBUG", format="json")

    assert isinstance(_renderer(), structlog.processors.JSONRenderer)
    assert logging.getLogger().level == logging.DEBUG


def test_console_renderer_is_default():
    configure_logging()

    assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)
    assert len(logging.getLogger().handlers) == 1


def test_http_libraries_are_quiet():
    configure_logging(level="DEBUG")

    assert logging.getLogger("httpx").level == logging.WARNING


def test_json_output_includes_bound_context(capsys):
    configure_logging(level="INFO", format="json")

    get_logger("invoice_desk.test").bind(component="renderer").info("document_rendered", size=10)

    err = capsys.readouterr().err
    assert '"event": "document_rendered"' in err
    assert '"component": "renderer"' in err
