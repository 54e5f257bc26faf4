"""Tests for backup code issue and consumption."""

import pytest

from twofactor.core.exceptions import RandomSourceUnavailable
from twofactor.models.enrollment import TwoFactorEnrollment, TwoFactorStatus
from twofactor.models.secret import Secret
from twofactor.services import backup_codes as backup_codes_module
from twofactor.services.backup_codes import (
    BACKUP_CODE_ALPHABET,
    BackupCodeManager,
    normalize_backup_code,
)


@pytest.fixture
def manager() -> BackupCodeManager:
    return BackupCodeManager(count=10, code_length=8)


@pytest.fixture
def enrollment() -> TwoFactorEnrollment:
    return TwoFactorEnrollment(
        account_id="account-1",
        status=TwoFactorStatus.ENABLED,
        secret=Secret(raw=b"12345678901234567890"),
    )


class TestIssue:
    """Test issuing backup codes."""

    def test_issue_codes(self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment):
        codes = manager.issue(enrollment)

        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            assert len(code) == 8
            assert set(code) <= set(BACKUP_CODE_ALPHABET)
        assert manager.remaining_count(enrollment) == 10

    def test_only_hashes_are_stored(self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment):
        codes = manager.issue(enrollment)
        stored = [backup_code.code_hash for backup_code in enrollment.backup_codes]

        assert all(h.startswith("$argon2") for h in stored)
        assert not set(codes) & set(stored)

    def test_alphabet_has_no_lookalikes(self):
        for char in "0O1I":
            assert char not in BACKUP_CODE_ALPHABET

    def test_custom_count_and_length(self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment):
        codes = manager.issue(enrollment, count=3, code_length=12)

        assert len(codes) == 3
        assert all(len(code) == 12 for code in codes)

    def test_reissue_invalidates_previous_codes(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock
    ):
        """Issuing again replaces every earlier code, used or not."""
        old_codes = manager.issue(enrollment)
        assert manager.consume(enrollment, old_codes[0], clock())

        new_codes = manager.issue(enrollment)

        assert manager.remaining_count(enrollment) == 10
        assert not manager.consume(enrollment, old_codes[1], clock())
        assert manager.consume(enrollment, new_codes[0], clock())

    def test_random_source_failure(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, monkeypatch
    ):
        def broken(sequence):
            raise OSError("getrandom failed")

        monkeypatch.setattr(backup_codes_module.secrets, "choice", broken)

        with pytest.raises(RandomSourceUnavailable):
            manager.issue(enrollment)
        assert enrollment.backup_codes == []


class TestConsume:
    """Test consuming backup codes."""

    def test_single_use(self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock):
        codes = manager.issue(enrollment)

        assert manager.consume(enrollment, codes[3], clock())
        assert manager.remaining_count(enrollment) == 9
        assert not manager.consume(enrollment, codes[3], clock())
        assert manager.remaining_count(enrollment) == 9

    def test_consumption_is_recorded(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock
    ):
        codes = manager.issue(enrollment)
        manager.consume(enrollment, codes[0], clock())

        consumed = [backup_code for backup_code in enrollment.backup_codes if backup_code.consumed]
        assert len(consumed) == 1
        assert consumed[0].consumed_at == clock()

    def test_case_ignored(self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock):
        codes = manager.issue(enrollment)

        assert manager.consume(enrollment, f" {codes[0].lower()} ", clock())

    @pytest.mark.parametrize("separator", ["-", " "])
    def test_separators_rejected(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock, separator: str
    ):
        """Only an exact match counts; a code split into groups is not accepted."""
        codes = manager.issue(enrollment)
        typed = f"{codes[0][:4]}{separator}{codes[0][4:]}"

        assert not manager.consume(enrollment, typed, clock())
        assert manager.remaining_count(enrollment) == 10

    @pytest.mark.parametrize("submitted", ["", "   ", "ZZZZZZZZ", "not-a-code"])
    def test_unknown_code(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock, submitted: str
    ):
        manager.issue(enrollment)

        assert not manager.consume(enrollment, submitted, clock())
        assert manager.remaining_count(enrollment) == 10

    def test_all_codes_usable_once(
        self, manager: BackupCodeManager, enrollment: TwoFactorEnrollment, clock
    ):
        codes = manager.issue(enrollment, count=3)

        for code in codes:
            assert manager.consume(enrollment, code, clock())
        assert manager.remaining_count(enrollment) == 0


@pytest.mark.parametrize(
    ("proof", "expected"),
    [
        ("ABCD2345", True),
        ("abcd2345", True),
        ("abcd-2345", False),
        ("ABCD 2345", False),
        ("123456", False),
        ("ABCD234", False),
        ("ABCD0345", False),  # 0 is not in the alphabet
        ("", False),
    ],
)
def test_looks_like_backup_code(manager: BackupCodeManager, proof: str, expected: bool):
    assert manager.looks_like_backup_code(proof) is expected


def test_normalize_backup_code():
    assert normalize_backup_code(" abCD2345\t") == "ABCD2345"
    assert normalize_backup_code("ab-cd 2345") == "AB-CD 2345"
