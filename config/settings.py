"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PREVIEW_CRAWLER_USER_AGENT = (
    "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)"
)
DESKTOP_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream page source
    amazon_music_api_url: str = Field(
        default="https://music.amazon.com",
        description="Base URL the metadata pages are fetched from",
    )
    search_result_limit: int = Field(
        default=5, description="Default number of search results (clamped to 1-10)"
    )
    request_timeout_ms: int = Field(
        default=10000, description="Timeout in milliseconds for a single page fetch"
    )
    preview_user_agent: str = Field(
        default=PREVIEW_CRAWLER_USER_AGENT,
        description="User-Agent sent to the page source so it renders preview tags",
    )

    # Search engine
    search_engine_url: str = Field(
        default="https://search.yahoo.com/search",
        description="Search engine results page used by the search harvester",
    )
    search_user_agent: str = Field(
        default=DESKTOP_BROWSER_USER_AGENT,
        description="User-Agent sent to the search engine",
    )

    # Application Configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to run the server on")
    log_level: str = Field(default="INFO", description="Logging level")
    cors_allow_origins: list[str] = Field(
        default=["*"], description="Origins allowed by the CORS middleware"
    )

    # Feature Flags
    enable_telemetry: bool = Field(default=True, description="Enable PostHog telemetry")

    # PostHog Configuration
    posthog_api_key: str | None = Field(None, description="PostHog API key for telemetry")
    posthog_host: str = Field(default="https://us.i.posthog.com", description="PostHog host URL")

    # Sentry Configuration
    sentry_dsn: str | None = Field(None, description="Sentry DSN for error tracking")

    # Application Metadata
    app_name: str = Field(default="Amazon-Music-Metadata", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
