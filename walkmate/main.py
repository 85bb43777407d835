"""walkmate - Dog-walking marketplace for owners and walkers."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from walkmate.core.config import constants, settings
from walkmate.core.context import AppContext
from walkmate.core.db_client import PocketBaseClient
from walkmate.core.local_cache import LocalCache
from walkmate.core.logging import configure_logfire, instrument_fastapi
from walkmate.interface.views import router as views_router
from walkmate.services import catalog_service, chat_service, session_service


logger = logging.getLogger(__name__)


async def check_pocketbase_connectivity() -> bool:
    """Probe the backend health endpoint. An unreachable backend is logged, not fatal."""
    try:
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{settings.pocketbase_url}/api/health")
    except httpx.HTTPError as e:
        logger.warning("startup_validation", extra={"service": "pocketbase", "status": "unreachable", "error": str(e)})
        return False

    if not response.is_success:
        logger.warning(
            "startup_validation",
            extra={"service": "pocketbase", "status": "unhealthy", "status_code": response.status_code},
        )
        return False

    logger.info("startup_validation", extra={"service": "pocketbase", "status": "ok"})
    return True


def build_context() -> AppContext:
    """Wire the backend client and the warm-start cache into a fresh context."""
    return AppContext(backend=PocketBaseClient(), cache=LocalCache(settings.local_cache_path))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    ctx = getattr(app.state, "ctx", None) or build_context()
    app.state.ctx = ctx

    if ctx.cache is not None:
        await ctx.cache.open()
    await catalog_service.warm_start(ctx)

    await check_pocketbase_connectivity()
    await session_service.restore_session(ctx)
    yield
    # Shutdown
    await chat_service.close_all_channels(ctx)
    await ctx.feed.close()
    if ctx.cache is not None:
        await ctx.cache.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="walkmate",
    description="Dog-walking marketplace for owners and walkers",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(views_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    ctx: AppContext | None = getattr(app.state, "ctx", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "session_loading": ctx.session.loading if ctx else True,
            "realtime_listeners": ctx.feed.listener_count if ctx else 0,
        },
        status_code=200,
    )
