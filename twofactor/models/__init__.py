"""Domain and database models."""

# Import the record here so SQLAlchemy metadata knows every table
from twofactor.models.enrollment import BackupCode, TwoFactorEnrollment, TwoFactorStatus
from twofactor.models.enrollment_record import TwoFactorEnrollmentRecord
from twofactor.models.secret import Secret

__all__ = [
    "BackupCode",
    "Secret",
    "TwoFactorEnrollment",
    "TwoFactorEnrollmentRecord",
    "TwoFactorStatus",
]
