"""Health check router with upstream connectivity checks."""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from amazon.service import AmazonMusicClient
from config.settings import Settings, get_settings
from core.dependencies import get_amazon_music_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 3.0


async def _check_page_source(client: AmazonMusicClient) -> str:
    """Ping the Amazon Music page source through the client's own fetcher."""
    return "ok" if await client.check_api() else "error"


async def _run_check(coro) -> str:
    """Run a single health check with a timeout."""
    try:
        return await asyncio.wait_for(coro, timeout=CHECK_TIMEOUT)
    except TimeoutError:
        return "timeout"


@router.get(
    "/health",
    summary="Health check",
    responses={200: {"description": "Service is healthy or degraded"}},
)
async def health_check(
    settings: Settings = Depends(get_settings),
    client: AmazonMusicClient = Depends(get_amazon_music_client),
):
    """Health check.

    The service itself has no hard dependencies; an unreachable page source
    degrades it (every lookup would fail) but search still answers.
    """
    services = {"amazon_music": await _run_check(_check_page_source(client))}
    status = "healthy" if all(v == "ok" for v in services.values()) else "degraded"

    if status != "healthy":
        logger.warning(f"Health check degraded: {services}")

    body = {
        "status": status,
        "version": settings.app_version,
        "services": services,
    }
    return JSONResponse(content=body, status_code=200)
