"""Configuration models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _normalize_log_level(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None

    level = v.strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid log level '{v}'. Use one of: {', '.join(LOG_LEVELS)}")

    return level


class EnvSettings(BaseSettings):
    """Overrides loaded from the environment or the optional .env file."""

    data_dir: Optional[str] = Field(None, description="Directory for database and index")
    log_level: Optional[str] = Field(None, description="Logging level override")

    model_config = SettingsConfigDict(
        env_prefix="BOOKMARKER_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_log_level(v)


class AppConfig(BaseModel):
    """Application configuration from config.yaml."""

    # Storage
    data_dir: Optional[str] = Field(
        None, description="Directory for database and index (defaults to the config directory)"
    )
    database_filename: str = Field(default="bookmarks.db", min_length=1)
    index_dirname: str = Field(default="search_index", min_length=1)

    # Extraction
    fetch_timeout: float = Field(
        default=10, description="HTTP fetch timeout in seconds", gt=0, le=120
    )
    max_response_bytes: int = Field(
        default=10 * 1024 * 1024, description="Largest page body accepted", ge=1024
    )
    user_agent: str = Field(default="bookmarker/0.1 (+https://github.com/san-kum/bookmarker)")

    # Retrieval
    list_default_limit: int = Field(default=100, ge=1, le=10000)
    search_default_limit: int = Field(default=20, ge=1, le=1000)
    fuzzy_candidate_limit: int = Field(default=1000, ge=1, le=100000)
    rebuild_limit: int = Field(default=1000, ge=1, le=100000)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "data_dir": "/home/user/.bookmark-manager",
            "database_filename": "bookmarks.db",
            "index_dirname": "search_index",
            "fetch_timeout": 10,
            "search_default_limit": 20,
            "rebuild_limit": 1000,
            "log_level": "INFO",
        }
    })

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return _normalize_log_level(v)

    @field_validator("database_filename", "index_dirname")
    @classmethod
    def validate_plain_name(cls, v: str) -> str:
        """Storage names must stay inside the data directory."""
        if ".." in v or "/" in v or "\\" in v:
            raise ValueError("Must be a plain file or directory name")

        return v
