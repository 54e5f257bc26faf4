"""API dependencies."""

from twofactor.api.v1.dependencies.auth import get_account_id
from twofactor.api.v1.dependencies.services import (
    get_enrollment_service,
    get_repository,
    get_verification_gateway,
)

__all__ = [
    "get_account_id",
    "get_enrollment_service",
    "get_repository",
    "get_verification_gateway",
]
