"""Hashing utilities for backup codes."""

from passlib.context import CryptContext

from twofactor.core.config import settings

# Argon2id for backup code hashes. The cost is configurable because every
# backup code attempt verifies against the whole unconsumed set.
backup_code_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__time_cost=settings.BACKUP_CODE_HASH_TIME_COST,
    argon2__memory_cost=settings.BACKUP_CODE_HASH_MEMORY_KIB,
    argon2__parallelism=1,
)


def hash_backup_code(code: str) -> str:
    """
    Hash a normalized backup code.

    Args:
        code: Normalized plain text backup code

    Returns:
        Argon2 hash string
    """
    return backup_code_context.hash(code)


def verify_backup_code(code: str, hashed_code: str) -> bool:
    """
    Verify a normalized backup code against a stored hash.

    Args:
        code: Normalized plain text backup code
        hashed_code: Stored hash to verify against

    Returns:
        True if the code matches, False otherwise
    """
    return backup_code_context.verify(code, hashed_code)
