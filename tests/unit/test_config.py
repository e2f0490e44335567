"""Unit tests for settings and logging configuration."""
import logging
import logging.handlers

from cpm_scheduler.config.settings import Settings, settings
from cpm_scheduler.utils.logger import configure_logging


class TestSettings:
    """Test settings defaults and validation."""

    def test_defaults_are_valid(self):
        assert settings.validate_required_settings() == []
        assert settings.RECALC_DEBOUNCE_MS >= 0

    def test_invalid_working_days_reported(self, monkeypatch):
        monkeypatch.setattr(Settings, 'DEFAULT_WORKING_DAYS', [1, 9])
        problems = Settings.validate_required_settings()
        assert any('CPM_DEFAULT_WORKING_DAYS' in p for p in problems)

    def test_relative_log_dir_resolves_under_project(self, monkeypatch):
        monkeypatch.setattr(Settings, 'LOG_DIR', 'logs')
        assert Settings.get_log_dir() == Settings.PROJECT_ROOT / 'logs'
        monkeypatch.setattr(Settings, 'LOG_DIR', '')
        assert Settings.get_log_dir() is None


class TestConfigureLogging:
    """Test logger setup."""

    def test_console_only(self, monkeypatch):
        monkeypatch.setattr(Settings, 'LOG_DIR', '')
        logger = configure_logging('cpm_scheduler.tests.console')
        assert len(logger.handlers) == 1
        # Repeated calls do not stack handlers
        assert len(configure_logging('cpm_scheduler.tests.console').handlers) == 1

    def test_rotating_file_handler(self, monkeypatch, tmp_path):
        monkeypatch.setattr(Settings, 'LOG_DIR', str(tmp_path / 'logs'))
        logger = configure_logging('cpm_scheduler.tests.file')
        try:
            file_handlers = [h for h in logger.handlers
                             if isinstance(h, logging.handlers.RotatingFileHandler)]
            assert len(file_handlers) == 1
            assert file_handlers[0].maxBytes == 10485760
            assert (tmp_path / 'logs').is_dir()
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
