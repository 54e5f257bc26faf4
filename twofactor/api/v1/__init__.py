"""API v1 router configuration."""

from fastapi import APIRouter

from twofactor.api.v1.endpoints import health, two_factor

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router)
api_router.include_router(two_factor.router)
