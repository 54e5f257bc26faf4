"""Two-factor enrollment lifecycle: Disabled -> PendingSetup -> Enabled -> Disabled."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from twofactor.core.clock import Clock, utcnow
from twofactor.core.config import settings
from twofactor.core.exceptions import (
    AlreadyEnabled,
    InvalidCode,
    InvalidProof,
    SetupExpired,
    SetupNotStarted,
    TwoFactorError,
    VerificationFailed,
)
from twofactor.core.logging_config import get_logger
from twofactor.models.enrollment import TwoFactorEnrollment, TwoFactorStatus
from twofactor.repositories.base import EnrollmentRepository
from twofactor.services import secret_generator
from twofactor.services.backup_codes import BackupCodeManager
from twofactor.services.lockout import LockoutPolicy
from twofactor.services.totp import TOTPEngine
from twofactor.services.verification import ProofVerifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class SetupChallenge:
    """Everything an authenticator app needs to import the pending secret."""

    secret: str
    manual_entry_key: str
    provisioning_uri: str
    qr_code: str


@dataclass(frozen=True)
class EnrollmentStatus:
    status: TwoFactorStatus
    backup_codes_remaining: int
    failed_attempts: int
    locked_until: datetime | None
    enabled_at: datetime | None
    last_used_at: datetime | None


class EnrollmentService:
    """
    Per-account state machine.

    begin_setup and confirm_setup take an account from Disabled to Enabled;
    disable and regenerate_backup_codes require a valid proof so that a
    stolen session cannot quietly weaken the account.
    """

    def __init__(
        self,
        repository: EnrollmentRepository,
        verifier: ProofVerifier | None = None,
        clock: Clock = utcnow,
        issuer: str | None = None,
        setup_timeout: timedelta | None = None,
    ):
        self.repository = repository
        self.verifier = verifier or ProofVerifier()
        self.clock = clock
        self.issuer = issuer or settings.TOTP_ISSUER
        self.setup_timeout = setup_timeout or timedelta(minutes=settings.SETUP_TIMEOUT_MINUTES)

    @property
    def totp(self) -> TOTPEngine:
        return self.verifier.totp

    @property
    def backup_codes(self) -> BackupCodeManager:
        return self.verifier.backup_codes

    @property
    def lockout(self) -> LockoutPolicy:
        return self.verifier.lockout

    async def begin_setup(self, account_id: str, account_name: str | None = None) -> SetupChallenge:
        """
        Generate a new secret and move the account to PendingSetup.

        Calling again while a setup is pending replaces the pending secret.

        Args:
            account_id: Account identifier
            account_name: Label shown in the authenticator app, defaults to the id

        Raises:
            AlreadyEnabled: If two-factor is enabled (disable first)
            RandomSourceUnavailable: If no secure random source is available
        """
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            if enrollment.is_enabled:
                raise AlreadyEnabled()

            restarted = enrollment.status is TwoFactorStatus.PENDING_SETUP
            secret = secret_generator.generate_secret()
            enrollment.start_setup(secret, self.clock())
            await self.repository.put(enrollment)

        logger.info("two_factor_setup_started", account_id=account_id, restarted=restarted)

        uri = secret_generator.provisioning_uri(
            secret,
            account=account_name or account_id,
            issuer=self.issuer,
            digits=self.totp.digits,
            period=self.totp.period,
            algorithm=self.totp.algorithm,
        )
        return SetupChallenge(
            secret=secret.base32,
            manual_entry_key=secret.manual_entry_key,
            provisioning_uri=uri,
            qr_code=secret_generator.qr_code_data_uri(uri),
        )

    async def confirm_setup(self, account_id: str, code: str) -> list[str]:
        """
        Confirm the pending secret with a code from the authenticator app.

        Returns:
            Plain text backup codes, shown to the user once

        Raises:
            AlreadyEnabled: If two-factor is already enabled
            SetupNotStarted: If no setup is pending
            SetupExpired: If the pending setup timed out (it is discarded)
            LockedOut: If too many attempts failed recently
            MalformedCode, InvalidCode: If the code is not accepted
        """
        error: TwoFactorError | None = None
        backup_codes: list[str] = []

        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            now = self.clock()
            try:
                backup_codes = self._confirm(enrollment, code, now)
            except (VerificationFailed, SetupExpired) as e:
                error = e
            await self.repository.put(enrollment)

        if error is not None:
            raise error

        logger.info("two_factor_enabled", account_id=account_id)
        return backup_codes

    def _confirm(self, enrollment: TwoFactorEnrollment, code: str, now: datetime) -> list[str]:
        if enrollment.is_enabled:
            raise AlreadyEnabled()
        if enrollment.status is not TwoFactorStatus.PENDING_SETUP or enrollment.secret is None:
            raise SetupNotStarted()

        if enrollment.setup_started_at and now - enrollment.setup_started_at > self.setup_timeout:
            enrollment.wipe()
            logger.info("two_factor_setup_expired", account_id=enrollment.account_id)
            raise SetupExpired()

        self.lockout.ensure_not_locked(enrollment, now)

        try:
            match = self.totp.verify(enrollment.secret, code, now, window_steps=self.verifier.window_steps)
        except VerificationFailed as e:
            self._record_failure(enrollment, now, e)
            raise
        if not match.valid:
            error = InvalidCode()
            self._record_failure(enrollment, now, error)
            raise error

        enrollment.status = TwoFactorStatus.ENABLED
        enrollment.enabled_at = now
        enrollment.last_used_at = now
        enrollment.last_verified_step = match.matched_step
        self.lockout.record_success(enrollment)
        return self.backup_codes.issue(enrollment)

    def _record_failure(self, enrollment: TwoFactorEnrollment, now: datetime, error: VerificationFailed) -> None:
        locked = self.lockout.record_failure(enrollment, now)
        logger.info(
            "setup_confirmation_failed",
            account_id=enrollment.account_id,
            reason=error.reason,
            failed_attempts=enrollment.failed_attempts,
            locked=locked,
        )

    async def cancel_setup(self, account_id: str) -> None:
        """
        Abandon a pending setup and discard its secret.

        Raises:
            AlreadyEnabled: If two-factor is enabled (use disable instead)
        """
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            if enrollment.is_enabled:
                raise AlreadyEnabled()
            if enrollment.status is TwoFactorStatus.DISABLED:
                return
            enrollment.wipe()
            await self.repository.put(enrollment)

        logger.info("two_factor_setup_cancelled", account_id=account_id)

    async def disable(self, account_id: str, proof: str) -> None:
        """
        Turn two-factor off. Requires a current TOTP code or an unused backup code.

        Raises:
            NotEnabled: If two-factor is not enabled
            LockedOut: If too many attempts failed recently
            InvalidProof: If the proof is not accepted; nothing changes
        """
        failure: VerificationFailed | None = None
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            try:
                result = self.verifier.check(enrollment, proof, self.clock())
            except VerificationFailed as e:
                failure = e
            else:
                enrollment.wipe()
            await self.repository.put(enrollment)

        if failure is not None:
            raise InvalidProof(reason=failure.reason) from failure

        logger.info("two_factor_disabled", account_id=account_id, method=result.method.value)

    async def regenerate_backup_codes(self, account_id: str, proof: str) -> list[str]:
        """
        Replace every backup code, used or not, with a new set.

        Returns:
            Plain text backup codes, shown to the user once

        Raises:
            NotEnabled: If two-factor is not enabled
            LockedOut: If too many attempts failed recently
            InvalidProof: If the proof is not accepted
        """
        failure: VerificationFailed | None = None
        codes: list[str] = []
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            try:
                self.verifier.check(enrollment, proof, self.clock())
            except VerificationFailed as e:
                failure = e
            else:
                codes = self.backup_codes.issue(enrollment)
            await self.repository.put(enrollment)

        if failure is not None:
            raise InvalidProof(reason=failure.reason) from failure

        return codes

    async def get_status(self, account_id: str) -> EnrollmentStatus:
        """Current enrollment state for display."""
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)

        return EnrollmentStatus(
            status=enrollment.status,
            backup_codes_remaining=enrollment.backup_codes_remaining,
            failed_attempts=enrollment.failed_attempts,
            locked_until=enrollment.locked_until,
            enabled_at=enrollment.enabled_at,
            last_used_at=enrollment.last_used_at,
        )
