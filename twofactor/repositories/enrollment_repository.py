"""SQLAlchemy-backed enrollment repository."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from twofactor.core.encryption import EncryptionService, encryption_service
from twofactor.core.exceptions import ConcurrentModification
from twofactor.core.logging_config import get_logger
from twofactor.models.enrollment import BackupCode, TwoFactorEnrollment
from twofactor.models.enrollment_record import TwoFactorEnrollmentRecord
from twofactor.models.secret import Secret
from twofactor.repositories.base import EnrollmentRepository

logger = get_logger(__name__)


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):
    """
    Enrollment repository on top of an async SQLAlchemy session.

    ``lock`` scopes one transaction: rows are read with SELECT ... FOR UPDATE
    and the version column rejects writes based on a stale read, so
    concurrent requests for one account cannot both succeed. The transaction
    commits when the block exits normally and rolls back otherwise.
    """

    def __init__(self, db: AsyncSession, encryption: EncryptionService | None = None):
        """
        Initialize repository.

        Args:
            db: Database session, one per request
            encryption: Cipher for secrets at rest
        """
        self.db = db
        self.encryption = encryption or encryption_service
        self._loaded: dict[str, TwoFactorEnrollmentRecord] = {}

    @asynccontextmanager
    async def lock(self, account_id: str) -> AsyncIterator[None]:
        try:
            yield
        except BaseException:
            await self.db.rollback()
            raise
        else:
            try:
                await self.db.commit()
            except (StaleDataError, IntegrityError) as e:
                await self.db.rollback()
                logger.warning("enrollment_commit_conflict", account_id=account_id)
                raise ConcurrentModification(account_id) from e
        finally:
            self._loaded.pop(account_id, None)

    async def _load(self, account_id: str) -> TwoFactorEnrollmentRecord | None:
        result = await self.db.execute(
            select(TwoFactorEnrollmentRecord)
            .where(TwoFactorEnrollmentRecord.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, account_id: str) -> TwoFactorEnrollment:
        record = await self._load(account_id)
        if record is None:
            return TwoFactorEnrollment(account_id=account_id)
        self._loaded[account_id] = record
        return self._to_domain(record)

    async def put(self, enrollment: TwoFactorEnrollment) -> None:
        enrollment.check_invariants()
        account_id = enrollment.account_id

        record = self._loaded.get(account_id) or await self._load(account_id)
        if record is None:
            if enrollment.version != 0:
                raise ConcurrentModification(account_id)
            record = TwoFactorEnrollmentRecord(account_id=account_id)
            self.db.add(record)
        elif record.version != enrollment.version:
            raise ConcurrentModification(account_id)

        self._apply(record, enrollment)
        try:
            await self.db.flush()
        except (StaleDataError, IntegrityError) as e:
            await self.db.rollback()
            self._loaded.pop(account_id, None)
            raise ConcurrentModification(account_id) from e

        self._loaded[account_id] = record
        enrollment.version = record.version

    def _to_domain(self, record: TwoFactorEnrollmentRecord) -> TwoFactorEnrollment:
        secret = None
        if record.encrypted_secret:
            secret = Secret(raw=self.encryption.decrypt(record.encrypted_secret))

        return TwoFactorEnrollment(
            account_id=record.account_id,
            status=record.status,
            secret=secret,
            backup_codes=[
                BackupCode(
                    code_hash=item["code_hash"],
                    consumed=item["consumed"],
                    consumed_at=_parse_datetime(item.get("consumed_at")),
                )
                for item in record.backup_codes
            ],
            failed_attempt_times=[datetime.fromisoformat(value) for value in record.failed_attempt_times],
            locked_until=record.locked_until,
            last_verified_step=record.last_verified_step,
            setup_started_at=record.setup_started_at,
            enabled_at=record.enabled_at,
            last_used_at=record.last_used_at,
            version=record.version,
        )

    def _apply(self, record: TwoFactorEnrollmentRecord, enrollment: TwoFactorEnrollment) -> None:
        # JSON columns are replaced, never mutated in place, so changes are tracked
        record.status = enrollment.status
        record.encrypted_secret = (
            self.encryption.encrypt(enrollment.secret.raw) if enrollment.secret is not None else None
        )
        record.backup_codes = [_backup_code_to_json(code) for code in enrollment.backup_codes]
        record.failed_attempt_times = [value.isoformat() for value in enrollment.failed_attempt_times]
        record.locked_until = enrollment.locked_until
        record.last_verified_step = enrollment.last_verified_step
        record.setup_started_at = enrollment.setup_started_at
        record.enabled_at = enrollment.enabled_at
        record.last_used_at = enrollment.last_used_at


def _backup_code_to_json(code: BackupCode) -> dict[str, Any]:
    return {
        "code_hash": code.code_hash,
        "consumed": code.consumed,
        "consumed_at": code.consumed_at.isoformat() if code.consumed_at else None,
    }


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
