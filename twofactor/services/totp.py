"""
TOTP engine (RFC 6238).

Codes are HOTP values (RFC 4226) over a time counter:
counter = floor(unix_time / period), HMAC over the 8-byte big-endian
counter, dynamic truncation, modulo 10^digits, zero padded.
"""

import hashlib
import re
from dataclasses import dataclass
from datetime import UTC, datetime

import pyotp
from pyotp.utils import strings_equal

from twofactor.core.config import settings
from twofactor.core.exceptions import MalformedCode, ReplayedCode
from twofactor.models.secret import Secret

DIGESTS = {
    "SHA1": hashlib.sha1,
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}

Timestamp = datetime | int | float


@dataclass(frozen=True)
class TOTPMatch:
    """Outcome of a TOTP verification."""

    valid: bool
    matched_step: int | None = None


def unix_time(timestamp: Timestamp) -> float:
    """Convert a datetime or Unix seconds to Unix seconds. Naive datetimes are UTC."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return timestamp.timestamp()
    return float(timestamp)


class TOTPEngine:
    """Computes and verifies time-based one-time codes."""

    def __init__(
        self,
        digits: int | None = None,
        period: int | None = None,
        algorithm: str | None = None,
    ):
        self.digits = digits or settings.TOTP_DIGITS
        self.period = period or settings.TOTP_PERIOD_SECONDS
        self.algorithm = (algorithm or settings.TOTP_ALGORITHM).upper()
        if not 6 <= self.digits <= 10:
            raise ValueError(f"TOTP digits must be between 6 and 10, got {self.digits}")
        if self.algorithm not in DIGESTS:
            raise ValueError(f"Unsupported TOTP algorithm: {self.algorithm}")
        self._code_pattern = re.compile(rf"[0-9]{{{self.digits}}}")

    def _otp(self, secret: Secret) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret.base32,
            digits=self.digits,
            digest=DIGESTS[self.algorithm],
            interval=self.period,
        )

    def counter(self, timestamp: Timestamp) -> int:
        """Time step number for a timestamp."""
        return int(unix_time(timestamp) // self.period)

    def code_for_step(self, secret: Secret, step: int) -> str:
        """Code for an explicit time step."""
        return self._otp(secret).generate_otp(step)

    def compute_code(self, secret: Secret, timestamp: Timestamp) -> str:
        """Code valid during the time step containing ``timestamp``."""
        return self.code_for_step(secret, self.counter(timestamp))

    def is_well_formed(self, submitted: str) -> bool:
        """True if the value is exactly ``digits`` ASCII digits."""
        return self._code_pattern.fullmatch(submitted) is not None

    def verify(
        self,
        secret: Secret,
        submitted: str,
        timestamp: Timestamp,
        window_steps: int | None = None,
        last_verified_step: int | None = None,
    ) -> TOTPMatch:
        """
        Verify a submitted code against the steps around ``timestamp``.

        Steps are tried closest first (0, -1, +1, -2, +2, ...). Every
        comparison is constant time. Steps at or before ``last_verified_step``
        are never accepted.

        Args:
            secret: Shared secret
            submitted: Code entered by the user
            timestamp: Verification time
            window_steps: Accepted drift in steps on either side
            last_verified_step: Most recent step already accepted for the account

        Returns:
            TOTPMatch with the accepted step, or ``valid=False``

        Raises:
            MalformedCode: If the code is not exactly ``digits`` digits
            ReplayedCode: If the code only matches already used steps
        """
        if window_steps is None:
            window_steps = settings.TOTP_WINDOW_STEPS

        if not self.is_well_formed(submitted):
            raise MalformedCode()

        otp = self._otp(secret)
        current = self.counter(timestamp)
        offsets = sorted(range(-window_steps, window_steps + 1), key=lambda o: (abs(o), o))

        replayed = False
        for offset in offsets:
            step = current + offset
            if step < 0:
                continue
            if not strings_equal(otp.generate_otp(step), submitted):
                continue
            if last_verified_step is not None and step <= last_verified_step:
                replayed = True
                continue
            return TOTPMatch(valid=True, matched_step=step)

        if replayed:
            raise ReplayedCode()
        return TOTPMatch(valid=False)
