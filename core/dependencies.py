"""FastAPI dependency injection providers."""

import logging

from fastapi import Depends
from posthog import Posthog

from amazon.service import AmazonMusicClient, ClientConfig
from config.settings import Settings, get_settings
from core.exceptions import ConfigurationError, ServiceInitializationError

logger = logging.getLogger(__name__)

# Module-level instances for lifecycle management
_amazon_client: AmazonMusicClient | None = None
_posthog_client: Posthog | None = None


def get_amazon_music_client(settings: Settings = Depends(get_settings)) -> AmazonMusicClient:
    """Get the Amazon Music client instance.

    The client only holds configuration and a pooled HTTP connection; no
    per-request state is kept on it.

    Args:
        settings: Application settings

    Returns:
        AmazonMusicClient: Configured client

    Raises:
        ServiceInitializationError: If the client configuration is invalid
    """
    global _amazon_client

    if _amazon_client is None:
        try:
            config = ClientConfig.from_settings(settings)
        except ConfigurationError as e:
            logger.error(f"Invalid Amazon Music configuration: {e.message}")
            raise ServiceInitializationError(
                f"Amazon Music client initialization failed: {e.message}", e.details
            ) from e

        _amazon_client = AmazonMusicClient(config)
        logger.info(
            f"Amazon Music client initialized (base: {config.api_base}, "
            f"timeout: {config.request_timeout_ms}ms)"
        )

    return _amazon_client


async def close_amazon_music_client() -> None:
    """Close the Amazon Music client and its HTTP connection pool."""
    global _amazon_client
    if _amazon_client:
        await _amazon_client.close()
        _amazon_client = None


def get_posthog_client(settings: Settings = Depends(get_settings)) -> Posthog | None:
    """Get PostHog client instance.

    Args:
        settings: Application settings

    Returns:
        Optional[Posthog]: PostHog client if configured and enabled, None otherwise
    """
    global _posthog_client

    if not settings.enable_telemetry:
        logger.debug("Telemetry disabled")
        return None

    if not settings.posthog_api_key:
        logger.debug("POSTHOG_API_KEY not set - telemetry disabled")
        return None

    if _posthog_client is None:
        _posthog_client = Posthog(
            project_api_key=settings.posthog_api_key,
            host=settings.posthog_host,
        )
        logger.info(f"PostHog client initialized (host: {settings.posthog_host})")

    return _posthog_client


def flush_posthog() -> None:
    """Flush any buffered PostHog events."""
    if _posthog_client:
        _posthog_client.flush()


def shutdown_posthog() -> None:
    """Shutdown PostHog client gracefully."""
    global _posthog_client
    if _posthog_client:
        _posthog_client.shutdown()
        _posthog_client = None
        logger.info("PostHog client shutdown")
