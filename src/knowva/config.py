"""Application settings via pydantic-settings."""

import os
from functools import lru_cache

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

IN_MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class Settings(BaseSettings):
    """Application configuration.

    Values come from environment variables with the KNOWVA_ prefix, a .env file,
    and a TOML config file. The config file wins over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="KNOWVA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Core ---
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Database ---
    database_url: str = ""
    database_user: str = ""
    database_password: str = ""

    # --- Redis / rate limiting ---
    redis_url: str = ""
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # --- JWT ---
    jwt_secret: str = "your-default-secret-change-this"
    jwt_issuer: str = "knowva-app"
    jwt_audience: str = "knowva-users"
    jwt_access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 30

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.environ.get("KNOWVA_CONFIG_FILE", "knowva.toml")
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @property
    def uses_in_memory_database(self) -> bool:
        return not self.database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
