"""Configuration management with Pydantic and XDG base directory support."""

import sys
from pathlib import Path
from typing import Literal

from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from adchroma.utils.paths import ensure_dir, get_xdg_data_home

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class Settings(BaseSettings):
    """adchroma configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="ADCHROMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path | None = Field(
        default=None,
        description="Override data directory (defaults to XDG_DATA_HOME/adchroma)",
    )

    db_name: str = Field(
        default="adchroma",
        min_length=1,
        description="SQLite database file name; '.db' is appended when missing",
    )

    # Index defaults, overridden per collection by its metadata
    default_max_elements: int = Field(
        default=1000,
        gt=0,
        description="Starting capacity of a new index and floor for capacity growth",
    )

    default_ef_search: int = Field(
        default=10,
        gt=0,
        description="Size of the dynamic nearest-neighbour list used at query time",
    )

    log_level: LogLevel = Field(
        default="WARNING",
        description="Root log level configured by the CLI",
    )

    _resolved_data_dir: Path | None = PrivateAttr(default=None)
    _data_dir_warning_emitted: bool = PrivateAttr(default=False)

    def get_data_dir(self) -> Path:
        """Get the data directory, creating if necessary."""
        if self._resolved_data_dir is not None and self.data_dir in (
            None,
            self._resolved_data_dir,
        ):
            return self._resolved_data_dir

        if self.data_dir:
            data_dir = self.data_dir
            data_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = data_dir
            return data_dir

        primary_dir = get_xdg_data_home() / "adchroma"
        try:
            primary_dir.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = primary_dir
            return primary_dir
        except PermissionError as exc:
            fallback = Path.cwd() / ".adchroma-data"
            fallback.mkdir(parents=True, exist_ok=True)
            self._resolved_data_dir = fallback
            if not self._data_dir_warning_emitted:
                print(
                    f"Warning: cannot create data directory at {primary_dir} ({exc}). "
                    f"Using local '{fallback}' instead. Pass --data-dir to override.",
                    file=sys.stderr,
                )
                self._data_dir_warning_emitted = True
            return fallback

    def get_db_path(self) -> Path:
        """Get path to the SQLite database holding collections and embeddings."""
        name = self.db_name if self.db_name.endswith(".db") else f"{self.db_name}.db"
        return self.get_data_dir() / name

    def get_index_dir(self) -> Path:
        """Get the root directory holding one sub-directory per collection index."""
        return ensure_dir(self.get_data_dir() / "index")


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
