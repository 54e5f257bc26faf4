"""Account identification for API endpoints."""

from fastapi import HTTPException, Request, status

from twofactor.core.config import settings


def get_account_id(request: Request) -> str:
    """
    Get the account id asserted by the upstream auth layer.

    The two-factor API never authenticates passwords or sessions itself; it
    trusts the header set by the gateway in front of it.

    Args:
        request: Incoming request

    Returns:
        Account id

    Raises:
        HTTPException: If the header is missing or empty
    """
    account_id = request.headers.get(settings.ACCOUNT_ID_HEADER, "").strip()
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return account_id
