"""Repository interface for two-factor enrollments."""

import asyncio
import weakref
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from twofactor.models.enrollment import TwoFactorEnrollment


class AccountLocks:
    """
    One asyncio lock per account.

    Locks are held weakly so that idle accounts do not accumulate entries.
    Different accounts never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        lock = self.get(account_id)
        async with lock:
            yield


class EnrollmentRepository(ABC):
    """
    Durable per-account storage for TwoFactorEnrollment records.

    Mutating callers wrap ``get``/``put`` in ``lock(account_id)`` so that
    requests for the same account are serialized and the success decision is
    stored together with what it consumed.
    """

    @abstractmethod
    def lock(self, account_id: str) -> AbstractAsyncContextManager[None]:
        """Async context manager serializing work on one account."""

    @abstractmethod
    async def get(self, account_id: str) -> TwoFactorEnrollment:
        """
        Load the enrollment for an account.

        Accounts without a stored record get a fresh Disabled enrollment
        with ``version`` 0.
        """

    @abstractmethod
    async def put(self, enrollment: TwoFactorEnrollment) -> None:
        """
        Store an enrollment.

        Raises:
            ConcurrentModification: If the stored version moved on since ``get``
            ValueError: If the record violates its invariants
        """
