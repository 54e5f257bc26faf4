"""Helpers shared by the test modules."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from twofactor.models.secret import Secret
from twofactor.services.enrollment import EnrollmentService
from twofactor.services.totp import TOTPEngine

# RFC 6238 appendix B seed for HMAC-SHA1
RFC_SECRET = Secret(raw=b"12345678901234567890")

# Start on a time step boundary so that "advance one step" is exact
START_TIME = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """Settable clock passed to services in place of the wall clock."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class EnabledAccount:
    account_id: str
    secret: Secret
    backup_codes: list[str]


async def enable_two_factor(
    service: EnrollmentService, engine: TOTPEngine, clock: FakeClock, account_id: str
) -> EnabledAccount:
    """Run setup and confirmation, then move to the next time step."""
    challenge = await service.begin_setup(account_id)
    secret = Secret.from_base32(challenge.secret)
    backup_codes = await service.confirm_setup(account_id, engine.compute_code(secret, clock()))
    # The confirmation code's step is now used up
    clock.advance(seconds=30)
    return EnabledAccount(account_id=account_id, secret=secret, backup_codes=backup_codes)
