"""Per-account two-factor enrollment record."""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from twofactor.models.secret import Secret


class TwoFactorStatus(str, enum.Enum):
    """Enrollment lifecycle states."""

    DISABLED = "disabled"
    PENDING_SETUP = "pending_setup"
    ENABLED = "enabled"


@dataclass
class BackupCode:
    """Hashed single-use recovery code."""

    code_hash: str
    consumed: bool = False
    consumed_at: datetime | None = None


@dataclass
class TwoFactorEnrollment:
    """
    Two-factor state for a single account.

    Owned by the repository; services load it under the account lock, mutate
    it and put it back.
    """

    account_id: str
    status: TwoFactorStatus = TwoFactorStatus.DISABLED
    secret: Secret | None = None
    backup_codes: list[BackupCode] = field(default_factory=list)

    # Timestamps of consecutive recent failures, oldest first
    failed_attempt_times: list[datetime] = field(default_factory=list)
    locked_until: datetime | None = None
    last_verified_step: int | None = None

    setup_started_at: datetime | None = None
    enabled_at: datetime | None = None
    last_used_at: datetime | None = None

    # Compare-and-swap stamp maintained by the repository
    version: int = 0

    @property
    def failed_attempts(self) -> int:
        return len(self.failed_attempt_times)

    @property
    def is_enabled(self) -> bool:
        return self.status is TwoFactorStatus.ENABLED

    @property
    def backup_codes_remaining(self) -> int:
        return sum(1 for code in self.backup_codes if not code.consumed)

    def start_setup(self, secret: Secret, now: datetime) -> None:
        """Move to PendingSetup with a fresh secret, dropping any earlier one."""
        self.status = TwoFactorStatus.PENDING_SETUP
        self.secret = secret
        self.backup_codes = []
        self.last_verified_step = None
        self.setup_started_at = now
        self.enabled_at = None

    def wipe(self) -> None:
        """Return to Disabled, discarding the secret and every backup code."""
        self.status = TwoFactorStatus.DISABLED
        self.secret = None
        self.backup_codes = []
        self.failed_attempt_times = []
        self.locked_until = None
        self.last_verified_step = None
        self.setup_started_at = None
        self.enabled_at = None

    def check_invariants(self) -> None:
        """
        Raise ValueError if the record is internally inconsistent.

        A secret exists exactly when the status is not Disabled, and backup
        codes exist only once two-factor is Enabled.
        """
        has_secret = self.secret is not None
        if has_secret != (self.status is not TwoFactorStatus.DISABLED):
            raise ValueError(
                f"Enrollment {self.account_id}: secret presence does not match status {self.status.value}"
            )
        if self.backup_codes and self.status is not TwoFactorStatus.ENABLED:
            raise ValueError(
                f"Enrollment {self.account_id}: backup codes present while {self.status.value}"
            )
