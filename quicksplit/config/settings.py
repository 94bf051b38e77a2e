"""
Configuration Management for QuickSplit

Every setting is read from the environment (or a .env file) through
pydantic-settings, grouped by the component that needs it.

The calculation engine takes no configuration at all; only the
collaborators around it (storage, OCR, logging, input checks) do.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MindeeSettings(BaseSettings):
    """Credentials for the Mindee receipt API."""

    model_config = SettingsConfigDict(
        env_prefix="MINDEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Mindee API key"
    )


class StorageSettings(BaseSettings):
    """Local bill storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="QUICKSPLIT_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(memory|file)$",
        description="Key-value backend: 'memory' or 'file'"
    )
    file_path: Path = Field(
        default=Path.home() / ".quicksplit" / "bills.json",
        description="JSON file used by the 'file' backend"
    )
    bills_key: str = Field(
        default="quicksplit_bills",
        description="Key under which all bills are stored"
    )
    current_bill_key: str = Field(
        default="quicksplit_current_bill_id",
        description="Key holding the id of the bill being edited"
    )

    @field_validator("file_path")
    @classmethod
    def expand_file_path(cls, v: Path) -> Path:
        return v.expanduser()


class AppSettings(BaseSettings):
    """General settings: environment, logging and input sanity limits."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False = human-readable console output)"
    )

    # Validation thresholds
    max_item_price: float = Field(
        default=100000.0,
        gt=0,
        description="Item prices above this are flagged as suspicious (not rejected)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class Settings(BaseSettings):
    """Entry point to every settings group (mindee, storage, app)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily so OCR credentials are only
    # required when a receipt is actually scanned

    @property
    def mindee(self) -> MindeeSettings:
        return MindeeSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide Settings; cache_clear() forces a reload."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load each settings group.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing failures. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("mindee", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
