"""Environment-driven application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .config import ClientConfig, LoggingConfig


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    api_base_url: str = Field(
        default="https://api.example.com",
        description="Base URL of the backend API",
    )
    use_http: bool = Field(
        default=False,
        description="Use the HTTP-backed repositories instead of in-memory ones",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern="^(DEBUG|INFO|WARNING|ERROR)$",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or console)",
        pattern="^(json|console)$",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return v.rstrip("/")

    model_config = {
        "env_prefix": "APP_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    def to_client_config(self, **hooks: Any) -> ClientConfig:
        """
        Build a ClientConfig pointing at the configured API.

        Args:
            **hooks: Optional ``get_auth_token``, ``request_interceptor``,
                ``response_observer`` and ``refresh_token`` callables
        """
        return ClientConfig(
            base_url=self.api_base_url,
            logging=LoggingConfig(level=self.log_level),
            **hooks,
        )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Get the application settings, loaded once per process."""
    return AppSettings()
