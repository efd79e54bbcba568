"""Tests for the one-time code lifecycle."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from soilsense.database import utcnow
from soilsense.errors import InternalError, OtpExpiredError, OtpInvalidError, UserNotFoundError
from soilsense.models.otp import Otp, OtpPurpose
from soilsense.services.otp import MAX_CREATE_ATTEMPTS, OtpService, generate_otp, hash_otp


@pytest.fixture(name="otp_service")
def otp_service_fixture() -> OtpService:
    return OtpService(expire_minutes=10)


def active_codes(db: Session, user_id: int, purpose: OtpPurpose) -> list[Otp]:
    return db.query(Otp).filter(Otp.user_id == user_id, Otp.purpose == purpose, Otp.is_used.is_(False)).all()


class TestGeneration:
    def test_six_digits_without_leading_zero(self):
        for _ in range(200):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"

    def test_only_hash_is_stored(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        row = active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)[0]
        assert row.code_hash == hash_otp(code)
        assert code not in row.code_hash

    def test_expiry_window(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        before = utcnow()
        otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        row = active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)[0]
        assert before + timedelta(minutes=9) < row.expires_at <= utcnow() + timedelta(minutes=10)


class TestSupersede:
    def test_new_code_invalidates_previous(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        first = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        second = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        assert len(active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)) == 1
        if first != second:
            with pytest.raises(OtpInvalidError):
                otp_service.verify_otp(db_session, user.id, first, OtpPurpose.EMAIL_VERIFICATION)
        otp_service.verify_otp(db_session, user.id, second, OtpPurpose.EMAIL_VERIFICATION)

    def test_purposes_are_independent(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        verify_code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        reset_code = otp_service.create_otp(db_session, user.id, OtpPurpose.PASSWORD_RESET)

        assert len(active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)) == 1
        assert len(active_codes(db_session, user.id, OtpPurpose.PASSWORD_RESET)) == 1
        otp_service.verify_otp(db_session, user.id, verify_code, OtpPurpose.EMAIL_VERIFICATION)
        otp_service.verify_otp(db_session, user.id, reset_code, OtpPurpose.PASSWORD_RESET)

    def test_resend_supersedes(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        otp_service.create_otp(db_session, user.id, OtpPurpose.PASSWORD_RESET)
        code = otp_service.resend_otp_by_email(db_session, "TEST@example.com", OtpPurpose.PASSWORD_RESET)

        rows = active_codes(db_session, user.id, OtpPurpose.PASSWORD_RESET)
        assert len(rows) == 1
        assert rows[0].code_hash == hash_otp(code)

    def test_resend_unknown_user(self, db_session: Session, otp_service: OtpService):
        with pytest.raises(UserNotFoundError):
            otp_service.resend_otp(db_session, 999, OtpPurpose.EMAIL_VERIFICATION)
        with pytest.raises(UserNotFoundError):
            otp_service.resend_otp_by_email(db_session, "nobody@example.com", OtpPurpose.EMAIL_VERIFICATION)


class TestVerification:
    def test_single_use(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        otp_service.verify_otp(db_session, user.id, code, OtpPurpose.EMAIL_VERIFICATION)
        with pytest.raises(OtpInvalidError):
            otp_service.verify_otp(db_session, user.id, code, OtpPurpose.EMAIL_VERIFICATION)

    def test_wrong_purpose(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        with pytest.raises(OtpInvalidError):
            otp_service.verify_otp(db_session, user.id, code, OtpPurpose.PASSWORD_RESET)

    def test_expired_code(self, db_session: Session, otp_service: OtpService, user_factory):
        """A matching code past its expiry fails distinctly."""
        user = user_factory()
        code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        row = active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)[0]
        row.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(OtpExpiredError) as exc_info:
            otp_service.verify_otp(db_session, user.id, code, OtpPurpose.EMAIL_VERIFICATION)
        assert exc_info.value.reason == "OTP_EXPIRED"

    def test_verify_by_email(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        verified = otp_service.verify_otp_by_email(
            db_session, " Test@Example.com ", code, OtpPurpose.EMAIL_VERIFICATION
        )
        assert verified.id == user.id

    def test_verify_by_unknown_email(self, db_session: Session, otp_service: OtpService):
        with pytest.raises(UserNotFoundError):
            otp_service.verify_otp_by_email(db_session, "nobody@example.com", "123456", OtpPurpose.PASSWORD_RESET)


class TestCleanup:
    def test_removes_only_expired(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        otp_service.create_otp(db_session, user.id, OtpPurpose.PASSWORD_RESET)

        stale = active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)[0]
        stale.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert otp_service.cleanup_expired_otps(db_session) == 1
        remaining = db_session.query(Otp).filter(Otp.user_id == user.id).all()
        assert [r.purpose for r in remaining] == [OtpPurpose.PASSWORD_RESET]

    def test_codes_removed_with_user(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        db_session.delete(user)
        db_session.commit()
        assert db_session.query(Otp).count() == 0


class TestStorageGuard:
    def test_second_unused_code_violates_index(self, db_session: Session, user_factory):
        user = user_factory()
        expires = utcnow() + timedelta(minutes=10)
        for code in ("111111", "222222"):
            db_session.add(
                Otp(
                    user_id=user.id,
                    purpose=OtpPurpose.EMAIL_VERIFICATION,
                    code_hash=hash_otp(code),
                    expires_at=expires,
                    is_used=False,
                )
            )
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_used_codes_do_not_conflict(self, db_session: Session, user_factory):
        user = user_factory()
        expires = utcnow() + timedelta(minutes=10)
        for code in ("111111", "222222", "333333"):
            db_session.add(
                Otp(
                    user_id=user.id,
                    purpose=OtpPurpose.EMAIL_VERIFICATION,
                    code_hash=hash_otp(code),
                    expires_at=expires,
                    is_used=True,
                )
            )
        db_session.commit()
        assert db_session.query(Otp).count() == 3


class TestMaintenance:
    def test_sweep_uses_its_own_session(self, db_session: Session, user_factory):
        from soilsense import maintenance

        user = user_factory()
        OtpService(expire_minutes=-1).create_otp(db_session, user.id, OtpPurpose.PASSWORD_RESET)

        with patch.object(maintenance, "SessionLocal", return_value=db_session):
            assert maintenance.main() == 1
        assert db_session.query(Otp).count() == 0


def duplicate_error() -> IntegrityError:
    return IntegrityError("INSERT INTO otp", {}, Exception("UNIQUE constraint failed: otp.user_id, otp.purpose"))


class TestCreateRetry:
    def test_retries_after_conflict(self, db_session: Session, otp_service: OtpService, user_factory):
        """A concurrent insert rolls back the attempt and a fresh code is issued."""
        user = user_factory()
        real_commit = db_session.commit
        calls = []

        def commit_conflicting_once():
            calls.append(1)
            if len(calls) == 1:
                raise duplicate_error()
            real_commit()

        with patch.object(db_session, "commit", side_effect=commit_conflicting_once):
            code = otp_service.create_otp(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)

        assert len(calls) == 2
        rows = active_codes(db_session, user.id, OtpPurpose.EMAIL_VERIFICATION)
        assert len(rows) == 1
        assert rows[0].code_hash == hash_otp(code)
        otp_service.verify_otp(db_session, user.id, code, OtpPurpose.EMAIL_VERIFICATION)

    def test_gives_up_after_repeated_conflicts(self, db_session: Session, otp_service: OtpService, user_factory):
        user = user_factory()
        with patch.object(db_session, "commit", side_effect=duplicate_error()) as commit:
            with pytest.raises(InternalError) as exc_info:
                otp_service.create_otp(db_session, user.id, OtpPurpose.PASSWORD_RESET)

        assert commit.call_count == MAX_CREATE_ATTEMPTS
        assert exc_info.value.status_code == 500
        assert db_session.query(Otp).filter(Otp.user_id == user.id).count() == 0
