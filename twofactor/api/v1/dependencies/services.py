"""Service wiring for API endpoints."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from twofactor.core.config import settings
from twofactor.db.session import get_db
from twofactor.repositories.base import EnrollmentRepository
from twofactor.repositories.enrollment_repository import SQLAlchemyEnrollmentRepository
from twofactor.repositories.memory import InMemoryEnrollmentRepository
from twofactor.services.enrollment import EnrollmentService
from twofactor.services.verification import VerificationGateway


@lru_cache
def get_memory_repository() -> InMemoryEnrollmentRepository:
    """Process-wide store used when STORAGE_BACKEND is "memory"."""
    return InMemoryEnrollmentRepository()


async def get_repository(db: Annotated[AsyncSession, Depends(get_db)]) -> EnrollmentRepository:
    if settings.STORAGE_BACKEND == "memory":
        return get_memory_repository()
    return SQLAlchemyEnrollmentRepository(db)


def get_enrollment_service(
    repository: Annotated[EnrollmentRepository, Depends(get_repository)],
) -> EnrollmentService:
    return EnrollmentService(repository)


def get_verification_gateway(
    repository: Annotated[EnrollmentRepository, Depends(get_repository)],
) -> VerificationGateway:
    return VerificationGateway(repository)
