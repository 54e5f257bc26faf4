"""Logging middleware for request context and correlation."""

import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from twofactor.core.config import settings


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Bind request context to structlog and log each HTTP request.

    Binds request_id (from RequestIDMiddleware) and the asserted account id
    so that service-level events such as verification_failed can be
    correlated with the request that caused them.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        logger = structlog.get_logger(__name__)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=getattr(request.state, "request_id", "unknown"),
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )
        account_id = request.headers.get(settings.ACCOUNT_ID_HEADER)
        if account_id:
            structlog.contextvars.bind_contextvars(account_id=account_id)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            logger.info(
                "http_request",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return response

        except Exception as exc:
            logger.error(
                "http_request_failed",
                status_code=500,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                exception=str(exc),
                exc_info=True,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()
