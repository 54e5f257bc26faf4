"""Verification gateway: the entry point for "is this proof valid right now"."""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import NoReturn

from twofactor.core.clock import Clock, utcnow
from twofactor.core.exceptions import (
    InvalidCode,
    InvalidProof,
    MalformedCode,
    NotEnabled,
    VerificationFailed,
)
from twofactor.core.logging_config import get_logger
from twofactor.models.enrollment import TwoFactorEnrollment
from twofactor.repositories.base import EnrollmentRepository
from twofactor.services.backup_codes import BackupCodeManager
from twofactor.services.lockout import LockoutPolicy
from twofactor.services.totp import TOTPEngine

logger = get_logger(__name__)


class VerificationMethod(str, enum.Enum):
    TOTP = "totp"
    BACKUP_CODE = "backup_code"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    method: VerificationMethod
    remaining_backup_codes: int


class ProofVerifier:
    """
    Checks a proof (TOTP code or backup code) against an enrollment record.

    Works on a record already loaded under the account lock and mutates it:
    the accepted step, consumed backup code and failure counters all land on
    the same record that the caller stores afterwards.
    """

    def __init__(
        self,
        totp: TOTPEngine | None = None,
        backup_codes: BackupCodeManager | None = None,
        lockout: LockoutPolicy | None = None,
        window_steps: int | None = None,
    ):
        self.totp = totp or TOTPEngine()
        self.backup_codes = backup_codes or BackupCodeManager()
        self.lockout = lockout or LockoutPolicy()
        self.window_steps = window_steps

    def check(self, enrollment: TwoFactorEnrollment, proof: str, now: datetime) -> VerificationResult:
        """
        Verify a proof for an enabled enrollment.

        Raises:
            NotEnabled: If two-factor is not enabled
            LockedOut: If the account is locked, even for a correct proof
            MalformedCode: If the proof is neither code shaped nor backup shaped
            ReplayedCode: If the TOTP code was already used
            InvalidCode: If a TOTP shaped proof matches no step
            InvalidProof: If a backup shaped proof matches no unconsumed code
        """
        if not enrollment.is_enabled or enrollment.secret is None:
            raise NotEnabled()
        self.lockout.ensure_not_locked(enrollment, now)

        proof = proof or ""
        try:
            match = self.totp.verify(
                enrollment.secret,
                proof,
                now,
                window_steps=self.window_steps,
                last_verified_step=enrollment.last_verified_step,
            )
        except MalformedCode:
            if not self.backup_codes.looks_like_backup_code(proof):
                self._fail(enrollment, now, MalformedCode())
            if not self.backup_codes.consume(enrollment, proof, now):
                self._fail(enrollment, now, InvalidProof())
            return self._succeed(enrollment, now, VerificationMethod.BACKUP_CODE)
        except VerificationFailed as e:
            self._fail(enrollment, now, e)

        if not match.valid:
            self._fail(enrollment, now, InvalidCode())

        enrollment.last_verified_step = match.matched_step
        return self._succeed(enrollment, now, VerificationMethod.TOTP)

    def _succeed(
        self, enrollment: TwoFactorEnrollment, now: datetime, method: VerificationMethod
    ) -> VerificationResult:
        self.lockout.record_success(enrollment)
        enrollment.last_used_at = now
        return VerificationResult(
            valid=True,
            method=method,
            remaining_backup_codes=enrollment.backup_codes_remaining,
        )

    def _fail(self, enrollment: TwoFactorEnrollment, now: datetime, error: VerificationFailed) -> NoReturn:
        locked = self.lockout.record_failure(enrollment, now)
        logger.info(
            "verification_failed",
            account_id=enrollment.account_id,
            reason=error.reason,
            failed_attempts=enrollment.failed_attempts,
            locked=locked,
        )
        raise error


class VerificationGateway:
    """
    Single entry point used by the auth/session layer.

    Every call is serialized per account through the repository lock and the
    outcome (including failures) is stored before returning.
    """

    def __init__(
        self,
        repository: EnrollmentRepository,
        verifier: ProofVerifier | None = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.verifier = verifier or ProofVerifier()
        self.clock = clock

    async def verify(self, account_id: str, proof: str) -> VerificationResult:
        """
        Check a TOTP code or backup code for an account.

        Args:
            account_id: Account identifier
            proof: Six digit code or backup code

        Returns:
            VerificationResult with method and remaining backup codes

        Raises:
            NotEnabled, LockedOut, or a VerificationFailed subclass
        """
        failure: VerificationFailed | None = None
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            try:
                result = self.verifier.check(enrollment, proof, self.clock())
            except VerificationFailed as e:
                failure = e
            await self.repository.put(enrollment)

        if failure is not None:
            raise failure

        logger.info(
            "verification_succeeded",
            account_id=account_id,
            method=result.method.value,
            remaining_backup_codes=result.remaining_backup_codes,
        )
        return result

    async def remaining_backup_codes(self, account_id: str) -> int:
        """Number of unconsumed backup codes for an account."""
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
        return self.verifier.backup_codes.remaining_count(enrollment)

    async def reset_lockout(self, account_id: str) -> None:
        """Administrative reset of failed attempts and lockout."""
        async with self.repository.lock(account_id):
            enrollment = await self.repository.get(account_id)
            if enrollment.failed_attempts or enrollment.locked_until is not None:
                self.verifier.lockout.reset(enrollment)
                await self.repository.put(enrollment)
        logger.info("lockout_reset", account_id=account_id)
