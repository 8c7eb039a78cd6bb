"""Application settings loaded once from the environment."""
import logging
import sys
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Explicit configuration passed to every client and tool set.

    Nothing below the entry points reads the environment; they receive
    this object instead.
    """

    model_config = SettingsConfigDict(env_file=None, extra="ignore", populate_by_name=True)

    # Platform API base URLs
    slack_api_base_url: str = Field(default="https://slack.com/api", validation_alias="SLACK_API_BASE_URL")
    graph_api_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0", validation_alias="GRAPH_API_BASE_URL"
    )
    atlassian_api_base_url: str = Field(
        default="https://api.atlassian.com", validation_alias="ATLASSIAN_API_BASE_URL"
    )
    github_api_base_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_BASE_URL")

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT_SECONDS")

    # User context
    timezone: Optional[str] = Field(default=None, validation_alias="USER_TIMEZONE")

    # Tokens for the single-user stdio server
    slack_token: Optional[str] = Field(default=None, validation_alias="SLACK_TOKEN")
    azure_token: Optional[str] = Field(default=None, validation_alias="AZURE_TOKEN")
    atlassian_token: Optional[str] = Field(default=None, validation_alias="ATLASSIAN_TOKEN")
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")
    atlassian_cloud_id: Optional[str] = Field(default=None, validation_alias="ATLASSIAN_CLOUD_ID")

    # Cookies set by the OAuth layer, read by the HTTP server
    token_cookie_names: dict[str, str] = Field(
        default_factory=lambda: {
            "slack": "slack_token",
            "azure": "azure_token",
            "atlassian": "atlassian_token",
            "github": "github_token",
        }
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], validation_alias="CORS_ORIGINS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, built on first use."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout carries the stdio protocol stream."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True
    )
