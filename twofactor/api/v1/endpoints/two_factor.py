"""Two-factor (TOTP) endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from twofactor.api.v1.dependencies import get_account_id, get_enrollment_service, get_verification_gateway
from twofactor.schemas.two_factor import (
    BackupCodesResponse,
    ConfirmSetupRequest,
    MessageResponse,
    ProofRequest,
    SetupRequest,
    SetupResponse,
    StatusResponse,
    VerifyResponse,
)
from twofactor.services.enrollment import EnrollmentService
from twofactor.services.verification import VerificationGateway

router = APIRouter(prefix="/2fa", tags=["2fa"])

AccountId = Annotated[str, Depends(get_account_id)]
Enrollments = Annotated[EnrollmentService, Depends(get_enrollment_service)]
Gateway = Annotated[VerificationGateway, Depends(get_verification_gateway)]


@router.post("/setup", response_model=SetupResponse)
async def begin_setup(
    setup_request: SetupRequest,
    account_id: AccountId,
    service: Enrollments,
) -> SetupResponse:
    """
    Start two-factor setup for the current account.

    Returns the new secret as a provisioning URI and QR code. Two-factor is
    not active until /enable succeeds.
    """
    challenge = await service.begin_setup(account_id, setup_request.account_name)
    return SetupResponse(
        secret=challenge.secret,
        manual_entry_key=challenge.manual_entry_key,
        provisioning_uri=challenge.provisioning_uri,
        qr_code=challenge.qr_code,
    )


@router.post("/setup/cancel", response_model=MessageResponse)
async def cancel_setup(account_id: AccountId, service: Enrollments) -> MessageResponse:
    """Abandon a pending setup."""
    await service.cancel_setup(account_id)
    return MessageResponse(message="Two-factor setup cancelled")


@router.post("/enable", response_model=BackupCodesResponse)
async def confirm_setup(
    confirm_request: ConfirmSetupRequest,
    account_id: AccountId,
    service: Enrollments,
) -> BackupCodesResponse:
    """
    Enable two-factor after verifying a code from the pending secret.

    The backup codes in the response are never shown again.
    """
    backup_codes = await service.confirm_setup(account_id, confirm_request.code)
    return BackupCodesResponse(backup_codes=backup_codes)


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    proof_request: ProofRequest,
    account_id: AccountId,
    gateway: Gateway,
) -> VerifyResponse:
    """Verify a TOTP code or backup code, e.g. during login."""
    result = await gateway.verify(account_id, proof_request.proof)
    return VerifyResponse(
        valid=result.valid,
        method=result.method,
        remaining_backup_codes=result.remaining_backup_codes,
    )


@router.post("/disable", response_model=MessageResponse)
async def disable(
    proof_request: ProofRequest,
    account_id: AccountId,
    service: Enrollments,
) -> MessageResponse:
    """Disable two-factor. Requires a current code or an unused backup code."""
    await service.disable(account_id, proof_request.proof)
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/backup-codes/regenerate", response_model=BackupCodesResponse)
async def regenerate_backup_codes(
    proof_request: ProofRequest,
    account_id: AccountId,
    service: Enrollments,
) -> BackupCodesResponse:
    """Invalidate all backup codes and issue a new set."""
    backup_codes = await service.regenerate_backup_codes(account_id, proof_request.proof)
    return BackupCodesResponse(backup_codes=backup_codes)


@router.get("/status", response_model=StatusResponse)
async def get_status(account_id: AccountId, service: Enrollments) -> StatusResponse:
    """Get two-factor status for the current account."""
    enrollment_status = await service.get_status(account_id)
    return StatusResponse.model_validate(enrollment_status)
