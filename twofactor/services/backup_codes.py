"""Single-use recovery codes."""

import secrets
from datetime import datetime

from twofactor.core.config import settings
from twofactor.core.exceptions import RandomSourceUnavailable
from twofactor.core.logging_config import get_logger
from twofactor.core.security import hash_backup_code, verify_backup_code
from twofactor.models.enrollment import BackupCode, TwoFactorEnrollment

logger = get_logger(__name__)

# Upper case letters and digits without the look-alikes 0/O and 1/I
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def normalize_backup_code(code: str) -> str:
    """Trim surrounding whitespace and fold case so matching is case-insensitive."""
    return code.strip().upper()


class BackupCodeManager:
    """Issues, consumes and counts backup codes on an enrollment record."""

    def __init__(self, count: int | None = None, code_length: int | None = None):
        self.count = count or settings.BACKUP_CODE_COUNT
        self.code_length = code_length or settings.BACKUP_CODE_LENGTH

    def _random_code(self, length: int) -> str:
        try:
            return "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
        except (NotImplementedError, OSError) as e:
            logger.critical("random_source_unavailable", error=str(e))
            raise RandomSourceUnavailable() from e

    def looks_like_backup_code(self, proof: str) -> bool:
        """True if the proof has the shape of an issued backup code."""
        normalized = normalize_backup_code(proof)
        return len(normalized) == self.code_length and all(
            char in BACKUP_CODE_ALPHABET for char in normalized
        )

    def issue(
        self,
        enrollment: TwoFactorEnrollment,
        count: int | None = None,
        code_length: int | None = None,
    ) -> list[str]:
        """
        Replace the enrollment's backup codes with a fresh set.

        Previous codes are invalidated whether or not they were used.

        Args:
            enrollment: Record to update
            count: Number of codes to issue
            code_length: Characters per code

        Returns:
            Plain text codes. This is the only time they are available.
        """
        count = count or self.count
        code_length = code_length or self.code_length

        codes: list[str] = []
        while len(codes) < count:
            code = self._random_code(code_length)
            if code not in codes:
                codes.append(code)

        enrollment.backup_codes = [BackupCode(code_hash=hash_backup_code(code)) for code in codes]
        logger.info("backup_codes_issued", account_id=enrollment.account_id, count=count)
        return codes

    def consume(self, enrollment: TwoFactorEnrollment, submitted: str, now: datetime) -> bool:
        """
        Use up a backup code.

        Only unconsumed codes are checked. On a match exactly that code is
        marked consumed; otherwise the record is left untouched.

        Returns:
            True if the code was accepted
        """
        normalized = normalize_backup_code(submitted)
        if not normalized:
            return False

        for backup_code in enrollment.backup_codes:
            if backup_code.consumed:
                continue
            if verify_backup_code(normalized, backup_code.code_hash):
                backup_code.consumed = True
                backup_code.consumed_at = now
                logger.info(
                    "backup_code_consumed",
                    account_id=enrollment.account_id,
                    remaining=self.remaining_count(enrollment),
                )
                return True
        return False

    @staticmethod
    def remaining_count(enrollment: TwoFactorEnrollment) -> int:
        """Number of unconsumed backup codes."""
        return enrollment.backup_codes_remaining
