"""Main application entry point for the Amazon Music metadata service."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from amazon.router import router as amazon_router
from config.settings import get_settings
from core.dependencies import close_amazon_music_client, flush_posthog, shutdown_posthog
from core.logging import setup_logging
from core.sentry import init_sentry
from routers.health import router as health_router

load_dotenv()

settings = get_settings()

init_sentry(
    dsn=settings.sentry_dsn,
    environment="production" if settings.log_level != "DEBUG" else "development",
    release=settings.app_version,
)

log_file = None
if settings.log_level != "DEBUG":
    log_dir = Path("/app/logs") if Path("/app/logs").exists() else Path("logs")
    log_file = log_dir / "amazon-music-metadata.log"
setup_logging(level=settings.log_level, log_file=log_file)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan with proper startup and shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Page source: {settings.amazon_music_api_url}")

    yield

    logger.info("Shutting down application")
    shutdown_posthog()
    await close_amazon_music_client()
    logger.info("All services shut down")


app = FastAPI(
    title=settings.app_name,
    description=(
        "Metadata for Amazon Music tracks, albums, artists and playlists, scraped from "
        "OpenGraph tags and structured data, with track search through a web search engine"
    ),
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def posthog_flush_middleware(request: Request, call_next):
    """Flush PostHog events after each request to prevent data loss."""
    response = await call_next(request)
    flush_posthog()
    return response


app.include_router(health_router, prefix="", tags=["health"])
app.include_router(amazon_router, prefix="/api", tags=["amazon-music"])

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
