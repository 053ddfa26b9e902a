"""
FastAPI application entry point.

Uses an application factory (create_app) so tests can build an app with
their own settings and dependency overrides.

For local development:
    uvicorn s3content.main:app --reload

For production:
    gunicorn s3content.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import content, health
from .config.settings import ConfigError, get_settings, get_storage_config
from .core.content.models import DispatchError, MissingFieldError
from .infrastructure.storage.client import StorageError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the storage configuration once at startup so every request
    shares the same StorageConfig. A broken config is logged, not fatal;
    requests that need storage will fail with ConfigError.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "S3 Content API starting",
        extra={
            "version": __version__,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    try:
        get_storage_config()
    except ConfigError as e:
        logger.error("Storage configuration invalid", extra={"error": str(e)})

    yield

    logger.info("S3 Content API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Backend for the S3 content field type.

        ## Authentication

        All content endpoints require an API key in the `X-API-Key` header.

        ## Upload workflow

        1. `POST /api/v1/content/action?command=createMultipartUpload`
        2. `POST /api/v1/content/action?command=signUploadPart` per part,
           then PUT the part to the returned URL
        3. `POST /api/v1/content/action?command=completeMultipartUpload`
        4. `POST /api/v1/content/update-field` to link the new key

        `POST /api/v1/content/relink` resyncs a field with an S3 folder.
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

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        content.router,
        prefix="/api/v1/content",
        tags=["Content"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "S3 Content API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    # Exception handlers. Nothing below the routes catches storage or
    # field-store errors; this is where they become responses.

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError):
        logger.warning(
            "Unrecognized command",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)},
        )

    @app.exception_handler(MissingFieldError)
    async def missing_field_handler(request: Request, exc: MissingFieldError):
        logger.warning(
            "Command body missing fields",
            extra={"command": exc.command, "fields": exc.fields}
        )
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "command": exc.command, "missing": exc.fields},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "Storage operation failed",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Storage operation failed"},
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        logger.error(
            "Storage configuration error",
            extra={"path": request.url.path, "error": str(exc)}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Storage is not configured"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
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
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error. Please contact support if this persists."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={"title": settings.api_title, "version": __version__}
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "s3content.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
