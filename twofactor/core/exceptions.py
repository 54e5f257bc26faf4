"""Typed errors raised by the two-factor core."""

from datetime import UTC, datetime


class TwoFactorError(Exception):
    """Base exception for two-factor errors."""

    error_code = "TWO_FACTOR_ERROR"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the end user."""
        return self.message


class VerificationFailed(TwoFactorError):
    """
    A submitted code or proof was rejected.

    Every subclass presents the same public message so that callers cannot
    learn whether a code was malformed, replayed or simply wrong. The
    specific reason stays available in ``reason`` for internal logs.
    """

    error_code = "INVALID_CODE"
    reason = "invalid"

    def __init__(self, reason: str | None = None):
        if reason is not None:
            self.reason = reason
        super().__init__(f"Verification failed: {self.reason}", status_code=400)

    @property
    def public_message(self) -> str:
        return "Invalid code"


class MalformedCode(VerificationFailed):
    """Raised when a code has the wrong length or characters."""

    reason = "malformed"


class ReplayedCode(VerificationFailed):
    """Raised when a correct code belongs to an already used time step."""

    reason = "replayed"


class InvalidCode(VerificationFailed):
    """Raised when a TOTP code does not match any step in the window."""

    reason = "no_match"


class InvalidProof(VerificationFailed):
    """Raised when neither a TOTP code nor a backup code was accepted."""

    reason = "invalid_proof"


class NotEnabled(TwoFactorError):
    """Raised when an operation requires two-factor to be enabled."""

    error_code = "NOT_ENABLED"

    def __init__(self, message: str = "Two-factor authentication is not enabled"):
        super().__init__(message, status_code=409)


class AlreadyEnabled(TwoFactorError):
    """Raised when setup is requested while two-factor is enabled."""

    error_code = "ALREADY_ENABLED"

    def __init__(self, message: str = "Two-factor authentication is already enabled"):
        super().__init__(message, status_code=409)


class SetupNotStarted(TwoFactorError):
    """Raised when confirming a setup that was never begun."""

    error_code = "SETUP_NOT_STARTED"

    def __init__(self, message: str = "Two-factor setup has not been started"):
        super().__init__(message, status_code=409)


class SetupExpired(TwoFactorError):
    """Raised when a pending setup timed out and was discarded."""

    error_code = "SETUP_EXPIRED"

    def __init__(self, message: str = "Two-factor setup expired, start again"):
        super().__init__(message, status_code=410)


class LockedOut(TwoFactorError):
    """Raised when too many verification attempts failed recently."""

    error_code = "LOCKED_OUT"

    def __init__(self, locked_until: datetime | None = None, now: datetime | None = None):
        message = "Too many failed verification attempts"
        if locked_until:
            message += f", locked until {locked_until.isoformat()}"
        super().__init__(message, status_code=429)
        self.locked_until = locked_until
        self.retry_after: int | None = None
        if locked_until is not None:
            now = now or datetime.now(UTC)
            self.retry_after = max(1, int((locked_until - now).total_seconds()) + 1)


class ConcurrentModification(TwoFactorError):
    """Raised when a concurrent request updated the same enrollment first."""

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, account_id: str):
        super().__init__(
            f"Enrollment for account {account_id} was modified concurrently",
            status_code=409,
        )
        self.account_id = account_id


class RandomSourceUnavailable(TwoFactorError):
    """Raised when the operating system CSPRNG cannot be used. Never retried."""

    error_code = "RANDOM_SOURCE_UNAVAILABLE"

    def __init__(self, message: str = "Secure random source is unavailable"):
        super().__init__(message, status_code=503)
