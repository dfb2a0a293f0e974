"""
Application settings loaded from the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExpenseSettings(BaseSettings):
    """Settings for the expense tracker.

    Environment variables use the ``EXPENSES_`` prefix (e.g. EXPENSES_DB_PATH,
    EXPENSES_RECEIPTS_DIR, EXPENSES_RECEIPTS_BASE_URL, EXPENSES_LOG_LEVEL).
    """

    # Persistence
    db_path: Path = Path("expenses.db")
    receipts_dir: Path = Path("receipts")
    receipts_base_url: Optional[str] = None

    # Export
    export_filename: str = "expenses_export.zip"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "expense_tracker.log"

    # Receipt lifecycle
    enforce_status_transitions: bool = False
    cleanup_replaced_receipts: bool = True

    model_config = SettingsConfigDict(env_prefix="EXPENSES_", env_file=".env", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level '{v}'")
        return level

    @field_validator("log_file")
    @classmethod
    def validate_log_file(cls, v):
        # An empty value disables file logging
        return v or None


@lru_cache
def get_settings() -> ExpenseSettings:
    return ExpenseSettings()
