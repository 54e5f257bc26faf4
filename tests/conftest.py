"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator

# Settings are read at import time, so the test environment must be in place first
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STORAGE_BACKEND", "database")
os.environ.setdefault("BACKUP_CODE_HASH_TIME_COST", "1")
os.environ.setdefault("BACKUP_CODE_HASH_MEMORY_KIB", "1024")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'twofactor_test.db'}",
)

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import twofactor.models  # noqa: E402,F401
from tests.support import EnabledAccount, FakeClock, enable_two_factor  # noqa: E402
from twofactor.db.session import Base  # noqa: E402
from twofactor.repositories.memory import InMemoryEnrollmentRepository  # noqa: E402
from twofactor.services.enrollment import EnrollmentService  # noqa: E402
from twofactor.services.totp import TOTPEngine  # noqa: E402
from twofactor.services.verification import ProofVerifier, VerificationGateway  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def totp_engine() -> TOTPEngine:
    return TOTPEngine(digits=6, period=30, algorithm="SHA1")


@pytest.fixture
def repository() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture
def verifier(totp_engine: TOTPEngine) -> ProofVerifier:
    return ProofVerifier(totp=totp_engine, window_steps=1)


@pytest.fixture
def enrollment_service(repository, verifier, clock) -> EnrollmentService:
    return EnrollmentService(repository, verifier=verifier, clock=clock, issuer="Example")


@pytest.fixture
def gateway(repository, verifier, clock) -> VerificationGateway:
    return VerificationGateway(repository, verifier=verifier, clock=clock)


@pytest.fixture
async def enabled_account(enrollment_service, totp_engine, clock) -> EnabledAccount:
    """An account with two-factor enabled and a fresh, unused time step."""
    return await enable_two_factor(enrollment_service, totp_engine, clock, "account-1")


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    """Create a throwaway SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session
