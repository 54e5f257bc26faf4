"""Tests for the in-memory enrollment repository."""

import pytest

from tests.support import RFC_SECRET
from twofactor.core.exceptions import ConcurrentModification
from twofactor.models.enrollment import BackupCode, TwoFactorEnrollment, TwoFactorStatus
from twofactor.repositories.memory import InMemoryEnrollmentRepository


@pytest.mark.asyncio
async def test_unknown_account_is_disabled(repository: InMemoryEnrollmentRepository):
    enrollment = await repository.get("account-1")

    assert enrollment.status is TwoFactorStatus.DISABLED
    assert enrollment.secret is None
    assert enrollment.version == 0


@pytest.mark.asyncio
async def test_put_and_get(repository: InMemoryEnrollmentRepository, clock):
    enrollment = await repository.get("account-1")
    enrollment.start_setup(RFC_SECRET, clock())

    await repository.put(enrollment)

    stored = await repository.get("account-1")
    assert stored.status is TwoFactorStatus.PENDING_SETUP
    assert stored.secret == RFC_SECRET
    assert stored.version == 1


@pytest.mark.asyncio
async def test_get_returns_a_copy(repository: InMemoryEnrollmentRepository, clock):
    """Changes are only visible to others after put."""
    enrollment = await repository.get("account-1")
    enrollment.start_setup(RFC_SECRET, clock())
    await repository.put(enrollment)

    loaded = await repository.get("account-1")
    loaded.wipe()

    assert (await repository.get("account-1")).status is TwoFactorStatus.PENDING_SETUP


@pytest.mark.asyncio
async def test_stale_put_rejected(repository: InMemoryEnrollmentRepository, clock):
    first = await repository.get("account-1")
    second = await repository.get("account-1")

    first.start_setup(RFC_SECRET, clock())
    await repository.put(first)

    second.start_setup(RFC_SECRET, clock())
    with pytest.raises(ConcurrentModification):
        await repository.put(second)


@pytest.mark.asyncio
async def test_invariants_checked_on_put(repository: InMemoryEnrollmentRepository):
    enrollment = TwoFactorEnrollment(account_id="account-1", status=TwoFactorStatus.ENABLED)
    with pytest.raises(ValueError):
        await repository.put(enrollment)

    enrollment = TwoFactorEnrollment(
        account_id="account-1",
        status=TwoFactorStatus.PENDING_SETUP,
        secret=RFC_SECRET,
        backup_codes=[BackupCode(code_hash="x")],
    )
    with pytest.raises(ValueError):
        await repository.put(enrollment)

    assert (await repository.get("account-1")).version == 0
