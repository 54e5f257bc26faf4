"""E2E test fixtures and configuration."""

from collections.abc import AsyncGenerator
from typing import Annotated

import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.support import FakeClock
from twofactor.api.v1.dependencies import get_enrollment_service, get_repository, get_verification_gateway
from twofactor.core.config import settings
from twofactor.db.session import get_db
from twofactor.main import app
from twofactor.repositories.base import EnrollmentRepository
from twofactor.services.enrollment import EnrollmentService
from twofactor.services.verification import ProofVerifier, VerificationGateway

ACCOUNT_ID = "account-1"


@pytest.fixture
async def client(db_session: AsyncSession, clock: FakeClock, verifier: ProofVerifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test database and a controllable clock."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    def override_enrollment_service(
        repository: Annotated[EnrollmentRepository, Depends(get_repository)],
    ) -> EnrollmentService:
        return EnrollmentService(repository, verifier=verifier, clock=clock, issuer="Example")

    def override_gateway(
        repository: Annotated[EnrollmentRepository, Depends(get_repository)],
    ) -> VerificationGateway:
        return VerificationGateway(repository, verifier=verifier, clock=clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_enrollment_service] = override_enrollment_service
    app.dependency_overrides[get_verification_gateway] = override_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def account_client(client: AsyncClient) -> AsyncClient:
    """Client whose requests carry the account id header."""
    client.headers[settings.ACCOUNT_ID_HEADER] = ACCOUNT_ID
    return client
