"""Unit tests for caltempo.logging_config and console logging setup."""

import logging

import pytest
from colorlog import ColoredFormatter

from caltempo import _init_logging
from caltempo.logging_config import configure_logging, get_logging_status

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_levels():
    """Restore logger levels touched by configure_logging."""
    names = [None, "caltempo", "caltempo.tz", "icalendar", "dateutil"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_default_levels(self):
        configure_logging()

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("caltempo.tz").level == logging.INFO
        assert logging.getLogger("dateutil").level == logging.WARNING

    def test_debug_mode(self):
        configure_logging(debug_mode=True)

        assert logging.getLogger("caltempo").level == logging.DEBUG
        assert logging.getLogger("icalendar").level == logging.INFO

    def test_debug_env_var(self, monkeypatch):
        monkeypatch.setenv("CALTEMPO_DEBUG", "true")

        configure_logging()

        assert logging.getLogger("caltempo").level == logging.DEBUG

    def test_force_debug_overrides_env(self, monkeypatch):
        monkeypatch.setenv("CALTEMPO_DEBUG", "1")

        configure_logging(force_debug=False)

        assert logging.getLogger("caltempo").level == logging.INFO

    def test_env_log_level_sets_root(self, monkeypatch):
        monkeypatch.setenv("CALTEMPO_LOG_LEVEL", "warning")

        configure_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_status_reports_levels(self):
        configure_logging()

        status = get_logging_status()

        assert status["caltempo"] == "INFO"
        assert status["dateutil"] == "WARNING"
        assert status["debug_env"] is False


class TestInitLogging:
    """Tests for the console handler setup."""

    def test_installs_colored_handler_when_none(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])

        _init_logging("WARNING")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ColoredFormatter)
        assert root.level == logging.WARNING

    def test_keeps_existing_handlers(self, monkeypatch):
        root = logging.getLogger()
        existing = logging.NullHandler()
        monkeypatch.setattr(root, "handlers", [existing])

        _init_logging(None)

        assert root.handlers == [existing]
        assert root.level == logging.INFO

    def test_debug_env_forces_debug(self, monkeypatch):
        monkeypatch.setattr(logging.getLogger(), "handlers", [logging.NullHandler()])
        monkeypatch.setenv("CALTEMPO_DEBUG", "yes")

        _init_logging("ERROR")

        assert logging.getLogger().level == logging.DEBUG
