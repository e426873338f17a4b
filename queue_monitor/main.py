from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from queue_monitor import __version__
from queue_monitor.api.router import api_router
from queue_monitor.config import get_config, get_settings
from queue_monitor.core.exception_registry import load_configured_types, set_import_enabled
from queue_monitor.core.logging import setup_logging

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging()
    monitor_config = get_config().monitor
    set_import_enabled(monitor_config.import_exception_types)
    load_configured_types(monitor_config.exception_types)
    yield


app = FastAPI(
    title="Queue Monitor",
    description="Lifecycle records for background queue jobs",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}
