"""Failed-attempt tracking and temporary lockout."""

from datetime import datetime, timedelta

from twofactor.core.config import settings
from twofactor.core.exceptions import LockedOut
from twofactor.core.logging_config import get_logger
from twofactor.models.enrollment import TwoFactorEnrollment

logger = get_logger(__name__)


class LockoutPolicy:
    """
    Locks an account after too many consecutive failures in a sliding window.

    The policy runs inside the core regardless of any upstream rate limiting.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        window: timedelta | None = None,
        duration: timedelta | None = None,
    ):
        self.max_attempts = max_attempts or settings.MAX_FAILED_ATTEMPTS
        self.window = window or timedelta(minutes=settings.FAILED_ATTEMPT_WINDOW_MINUTES)
        self.duration = duration or timedelta(minutes=settings.LOCKOUT_DURATION_MINUTES)

    def is_locked(self, enrollment: TwoFactorEnrollment, now: datetime) -> bool:
        return enrollment.locked_until is not None and enrollment.locked_until > now

    def ensure_not_locked(self, enrollment: TwoFactorEnrollment, now: datetime) -> None:
        """
        Raise LockedOut while a lockout is active; clear an expired one.

        Raises:
            LockedOut: If the cooldown has not elapsed
        """
        if self.is_locked(enrollment, now):
            raise LockedOut(locked_until=enrollment.locked_until, now=now)
        if enrollment.locked_until is not None:
            enrollment.locked_until = None
            enrollment.failed_attempt_times = []

    def record_failure(self, enrollment: TwoFactorEnrollment, now: datetime) -> bool:
        """
        Record a failed attempt.

        Returns:
            True if this failure triggered a lockout
        """
        cutoff = now - self.window
        recent = [t for t in enrollment.failed_attempt_times if t > cutoff]
        recent.append(now)
        enrollment.failed_attempt_times = recent[-self.max_attempts :]

        if len(recent) >= self.max_attempts:
            enrollment.locked_until = now + self.duration
            logger.warning(
                "account_locked_out",
                account_id=enrollment.account_id,
                failed_attempts=len(recent),
                locked_until=enrollment.locked_until.isoformat(),
            )
            return True
        return False

    def record_success(self, enrollment: TwoFactorEnrollment) -> None:
        """Reset the consecutive failure count."""
        enrollment.failed_attempt_times = []
        enrollment.locked_until = None

    def reset(self, enrollment: TwoFactorEnrollment) -> None:
        """Administrative reset of the lockout state."""
        self.record_success(enrollment)
