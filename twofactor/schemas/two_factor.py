"""Two-factor request and response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from twofactor.models.enrollment import TwoFactorStatus
from twofactor.services.verification import VerificationMethod


class SetupRequest(BaseModel):
    """Request to begin two-factor setup."""

    account_name: str | None = Field(None, max_length=255)


class SetupResponse(BaseModel):
    """Pending secret and its provisioning forms."""

    secret: str
    manual_entry_key: str
    provisioning_uri: str
    qr_code: str


class ConfirmSetupRequest(BaseModel):
    """Request to enable two-factor with a code from the new secret."""

    code: str = Field(min_length=1, max_length=32)


class ProofRequest(BaseModel):
    """A TOTP code or backup code."""

    proof: str = Field(min_length=1, max_length=64)


class BackupCodesResponse(BaseModel):
    """Freshly issued backup codes, returned only once."""

    backup_codes: list[str]


class VerifyResponse(BaseModel):
    valid: bool
    method: VerificationMethod
    remaining_backup_codes: int


class StatusResponse(BaseModel):
    """Two-factor status for the current account."""

    status: TwoFactorStatus
    backup_codes_remaining: int
    failed_attempts: int
    locked_until: datetime | None
    enabled_at: datetime | None
    last_used_at: datetime | None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str
