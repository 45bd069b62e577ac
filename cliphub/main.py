"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Tests can hand in a context built around in-memory stores

For local development:
    uvicorn cliphub.main:app --reload

For production:
    gunicorn cliphub.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.routes import clips, health, users
from .config.settings import get_settings
from .context import AppContext, build_app_context
from .core.errors import ClipHubError

settings = get_settings()

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.log_level.upper(),
)

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Application factory.

    If no context is given, the lifespan builds one from settings at
    start-up, so configuration problems fail the boot instead of the
    first request.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup builds every store handle once; shutdown releases pooled
        connections.
        """
        app_context = context if context is not None else build_app_context(settings)
        app.state.context = app_context

        logger.info(
            "ClipHub API starting",
            extra={
                "version": settings.api_version,
                "mock_mode": {
                    "snowflake": app_context.settings.snowflake_mock_mode,
                    "r2": app_context.settings.r2_mock_mode,
                }
            }
        )

        yield

        app_context.close()
        logger.info("ClipHub API shutting down")

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Metadata and upload coordination for short video clips.

        ## Workflow

        1. **Register**: `POST /clips` returns the clip plus upload URLs
        2. **Upload**: PUT the bytes directly to the returned URLs
        3. **Play**: `GET /clips/{id}/playUrls` returns short-lived read URLs
        4. **Engage**: `POST /clips/{id}/view` and `POST /clips/{id}/like`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(clips.router, prefix="/clips", tags=["Clips"])
    app.include_router(users.router, prefix="/users", tags=["Users"])

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "ClipHub API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(ClipHubError)
    async def clip_hub_error_handler(request: Request, exc: ClipHubError):
        """Map every domain error to its status code and an {error} body."""
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "error": exc.message,
            }
        )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed JSON or a body that doesn't fit the schema is a 400."""
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message,
        so stack traces never leak to clients.
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
        return _error(500, "Internal server error")

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cliphub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
