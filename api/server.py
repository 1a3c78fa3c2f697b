"""
FastAPI application entry point.

Sets up the application with:
- Lifespan management (startup resources in, handles closed on the way out)
- Route registration
- Error handling
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import set_resources
from api.routes import health_router
from infra import bootstrap
from infra.config import Settings, get_settings
from infra.database import Migrator
from infra.logging import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    migrate: Optional[Migrator] = None,
) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application. Startup resources are
    initialized in the lifespan; a failure there terminates the process.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Logging, database and Redis, in that order. Exits on failure.
        resources = bootstrap.run_or_exit(settings, migrate=migrate)
        set_resources(resources)

        logger.info(
            "Blog server started",
            mode=settings.server.mode,
            port=settings.server.port,
            db_type=settings.db_type.value,
        )

        yield

        # =========================================
        # Shutdown
        # =========================================
        logger.info("Shutting down blog server...")
        set_resources(None)
        # Closes the log file last
        resources.close()

    app = FastAPI(
        title="Blog Server",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Register routes
    app.include_router(health_router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.server.mode == "debug" else "An error occurred",
            },
        )

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.server.port,
        log_config=None,
    )
