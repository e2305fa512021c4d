"""
FastAPI application entry point.

The lifespan owns the two long-lived components:
- the call record store used by request handlers
- the identity fetcher task that keeps the AWS token file fresh

For local development:
    STORAGE_MOCK_MODE=true uvicorn src.main:app --reload
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .api.dependencies import build_storage
from .api.routes import health
from .config.settings import get_settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup fails if the initial identity token can't be fetched: without
    it the DynamoDB client can't authenticate. On shutdown the fetcher is
    signalled to stop and its HTTP client closed.
    """
    settings = get_settings()

    logger.info(
        "Group call registry starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.storage_mock_mode,
            "table": settings.storage_table,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    store, fetcher = await build_storage(settings)
    app.state.call_record_store = store

    stop_event = asyncio.Event()
    fetcher_task = asyncio.create_task(fetcher.run(stop_event), name="identity-fetcher-run")

    yield

    logger.info("Group call registry shutting down")
    stop_event.set()
    await fetcher_task
    await fetcher.close()


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup in production, or per test with different
    configurations.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Tracks the live call instance for each calling group.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error."}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
