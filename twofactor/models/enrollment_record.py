"""SQLAlchemy model for persisted two-factor enrollments."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Enum, Integer, String, Text, TypeDecorator, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from twofactor.db.session import Base
from twofactor.models.enrollment import TwoFactorStatus


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that comes back as UTC even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class TwoFactorEnrollmentRecord(Base):
    """Stored enrollment row, one per account."""

    __tablename__ = "two_factor_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    status: Mapped[TwoFactorStatus] = mapped_column(
        Enum(TwoFactorStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=TwoFactorStatus.DISABLED,
        nullable=False,
    )

    # Fernet token of the raw secret
    encrypted_secret: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{"code_hash": ..., "consumed": ..., "consumed_at": ...}]
    backup_codes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # ISO timestamps of recent consecutive failures
    failed_attempt_times: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_verified_step: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Timestamps
    setup_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    enabled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<TwoFactorEnrollmentRecord account_id={self.account_id} status={self.status.value}>"
