"""Health check endpoints."""

import time
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from twofactor.core.config import settings
from twofactor.db.session import get_db

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "environment": settings.APP_ENV}


@router.get("/db")
async def database_health(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Database health check with query latency."""
    if settings.STORAGE_BACKEND == "memory":
        return {"status": "healthy", "database": "memory"}

    start_time = time.perf_counter()
    result = await db.execute(text("SELECT 1"))
    result.scalar_one()
    query_time_ms = round((time.perf_counter() - start_time) * 1000, 2)

    return {
        "status": "healthy",
        "database": "connected",
        "query_time_ms": query_time_ms,
    }
