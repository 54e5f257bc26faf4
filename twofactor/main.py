"""Main FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from twofactor.api.v1 import api_router
from twofactor.core.config import settings
from twofactor.core.exceptions import LockedOut, TwoFactorError, VerificationFailed
from twofactor.core.logging_config import configure_logging, get_logger
from twofactor.middleware.logging import LoggingMiddleware
from twofactor.middleware.request_id import RequestIDMiddleware

# Configure structured logging before any logger is used
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        storage_backend=settings.STORAGE_BACKEND,
    )

    from twofactor.db.session import Base, async_engine

    if settings.STORAGE_BACKEND == "database":
        import twofactor.models  # noqa: F401  register tables with Base

        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created")

    yield

    logger.info("application_shutting_down", app_name=settings.APP_NAME)
    await async_engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="TOTP two-factor authentication service",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Last added runs first: request ids must exist before the logging context is bound
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(TwoFactorError)
async def two_factor_exception_handler(request: Request, exc: TwoFactorError) -> JSONResponse:
    """Translate domain errors to JSON without leaking verification details."""
    log_fields = {
        "status_code": exc.status_code,
        "error_code": exc.error_code,
        "path": str(request.url.path),
        "exception_type": type(exc).__name__,
    }
    if isinstance(exc, VerificationFailed):
        log_fields["reason"] = exc.reason
    logger.warning("two_factor_exception", **log_fields)

    headers = None
    if isinstance(exc, LockedOut) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message, "code": exc.error_code},
        headers=headers,
    )


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "0.1.0",
        "docs": "/docs",
        "environment": settings.APP_ENV,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "twofactor.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
