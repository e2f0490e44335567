"""
Configuration settings for the CPM scheduler.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _parse_int_list(value: str) -> list[int]:
    return [int(part) for part in value.split(',') if part.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    PROJECT_ROOT = Path(__file__).parent.parent.parent

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    # Empty means console-only logging
    LOG_DIR = os.getenv('CPM_LOG_DIR', '')

    # ============================================================================
    # Calendar defaults (host format: 0=Sunday ... 6=Saturday)
    # ============================================================================
    DEFAULT_WORKING_DAYS = _parse_int_list(os.getenv('CPM_DEFAULT_WORKING_DAYS', '1,2,3,4,5'))

    # ============================================================================
    # Session
    # ============================================================================
    RECALC_DEBOUNCE_MS = int(os.getenv('CPM_RECALC_DEBOUNCE_MS', '300'))

    @classmethod
    def get_log_dir(cls) -> Optional[Path]:
        """Resolve the log directory, or None when file logging is disabled."""
        if not cls.LOG_DIR:
            return None
        log_dir = Path(cls.LOG_DIR)
        if not log_dir.is_absolute():
            log_dir = cls.PROJECT_ROOT / log_dir
        return log_dir

    @classmethod
    def validate_required_settings(cls) -> list[str]:
        """
        Validate settings values.
        Returns list of problems found.
        """
        problems = []

        if any(day < 0 or day > 6 for day in cls.DEFAULT_WORKING_DAYS):
            problems.append('CPM_DEFAULT_WORKING_DAYS must use values 0-6')
        if cls.RECALC_DEBOUNCE_MS < 0:
            problems.append('CPM_RECALC_DEBOUNCE_MS must not be negative')

        return problems


# Create settings instance
settings = Settings()
