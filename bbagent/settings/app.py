"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    workspace: str | None = Field(default=None, validation_alias="BB_WORKSPACE")
    username: str | None = Field(default=None, validation_alias="BB_USERNAME")
    token: str | None = Field(default=None, validation_alias="BB_TOKEN", repr=False)
    base_url: str = Field(default=DEFAULT_BASE_URL, validation_alias="BB_BASE_URL")
    http_debug: bool = Field(default=False, validation_alias="BB_HTTP_DEBUG")

    def missing_credentials(self) -> list[str]:
        """Return the names of required variables that are unset."""
        missing = []
        if not self.username:
            missing.append("BB_USERNAME")
        if not self.token:
            missing.append("BB_TOKEN")
        return missing


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
