"""In-process enrollment repository."""

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from twofactor.core.exceptions import ConcurrentModification
from twofactor.models.enrollment import TwoFactorEnrollment
from twofactor.repositories.base import AccountLocks, EnrollmentRepository


class InMemoryEnrollmentRepository(EnrollmentRepository):
    """Dictionary-backed repository for tests, the CLI and single-process use."""

    def __init__(self) -> None:
        self._records: dict[str, TwoFactorEnrollment] = {}
        self._locks = AccountLocks()

    @asynccontextmanager
    async def lock(self, account_id: str) -> AsyncIterator[None]:
        async with self._locks.hold(account_id):
            yield

    async def get(self, account_id: str) -> TwoFactorEnrollment:
        stored = self._records.get(account_id)
        if stored is None:
            return TwoFactorEnrollment(account_id=account_id)
        # Callers mutate what they get; the store only changes on put
        return copy.deepcopy(stored)

    async def put(self, enrollment: TwoFactorEnrollment) -> None:
        enrollment.check_invariants()
        stored = self._records.get(enrollment.account_id)
        stored_version = stored.version if stored is not None else 0
        if stored_version != enrollment.version:
            raise ConcurrentModification(enrollment.account_id)

        enrollment.version += 1
        self._records[enrollment.account_id] = copy.deepcopy(enrollment)
