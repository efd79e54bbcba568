"""One-time passcode lifecycle: issue, verify, resend, expire."""

import hashlib
import logging
import secrets
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from soilsense.config import get_settings
from soilsense.database import utcnow
from soilsense.errors import InternalError, OtpExpiredError, OtpInvalidError, UserNotFoundError
from soilsense.models.otp import Otp, OtpPurpose
from soilsense.models.user import User

logger = logging.getLogger("soilsense")

# Attempts when a concurrent request wins the active-code index first
MAX_CREATE_ATTEMPTS = 3


def generate_otp() -> str:
    """Generate a 6-digit code with no leading zero."""
    return str(secrets.randbelow(900000) + 100000)


def hash_otp(code: str) -> str:
    """Hash an OTP code using SHA-256."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OtpService:
    """Handles one-time code generation, verification and cleanup."""

    def __init__(self, expire_minutes: int) -> None:
        self.expire_minutes = expire_minutes

    def create_otp(self, db: Session, user_id: int, purpose: OtpPurpose) -> str:
        """Supersede any unused code for (user, purpose) and store a new one.

        Returns the plaintext code; only its hash is persisted.
        """
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            code = generate_otp()
            try:
                db.query(Otp).filter(
                    Otp.user_id == user_id,
                    Otp.purpose == purpose,
                    Otp.is_used.is_(False),
                ).update({Otp.is_used: True}, synchronize_session=False)
                db.add(
                    Otp(
                        user_id=user_id,
                        purpose=purpose,
                        code_hash=hash_otp(code),
                        expires_at=utcnow() + timedelta(minutes=self.expire_minutes),
                        is_used=False,
                    )
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning("OTP create raced for user %s (%s), attempt %d", user_id, purpose.value, attempt)
                continue
            return code

        raise InternalError("Could not issue a verification code")

    def verify_otp(
        self, db: Session, user_id: int, code: str, purpose: OtpPurpose, commit: bool = True
    ) -> None:
        """Consume a code. Raises OtpInvalidError or OtpExpiredError.

        With ``commit=False`` the consumption is flushed but left for the caller
        to commit alongside its own changes.
        """
        otp = (
            db.query(Otp)
            .filter(
                Otp.user_id == user_id,
                Otp.code_hash == hash_otp(code),
                Otp.purpose == purpose,
                Otp.is_used.is_(False),
            )
            .first()
        )
        if not otp:
            raise OtpInvalidError()

        if otp.expires_at < utcnow():
            raise OtpExpiredError()

        # Guarded update so two concurrent verifications cannot both succeed
        consumed = (
            db.query(Otp)
            .filter(Otp.id == otp.id, Otp.is_used.is_(False))
            .update({Otp.is_used: True, Otp.used_at: utcnow()}, synchronize_session=False)
        )
        if consumed != 1:
            db.rollback()
            raise OtpInvalidError()

        if commit:
            db.commit()
        else:
            db.flush()

    def verify_otp_by_email(self, db: Session, email: str, code: str, purpose: OtpPurpose) -> User:
        """Resolve the user by email, then consume the code. Returns the user."""
        user = db.query(User).filter(User.email == email.lower().strip()).first()
        if not user:
            raise UserNotFoundError()
        self.verify_otp(db, user.id, code, purpose)
        return user

    def resend_otp(self, db: Session, user_id: int, purpose: OtpPurpose) -> str:
        """Issue a fresh code for a known user, superseding the previous one."""
        if db.get(User, user_id) is None:
            raise UserNotFoundError()
        return self.create_otp(db, user_id, purpose)

    def resend_otp_by_email(self, db: Session, email: str, purpose: OtpPurpose) -> str:
        user = db.query(User).filter(User.email == email.lower().strip()).first()
        if not user:
            raise UserNotFoundError()
        return self.create_otp(db, user.id, purpose)

    def cleanup_expired_otps(self, db: Session) -> int:
        """Delete every code past its expiry. Returns the number removed."""
        removed = db.query(Otp).filter(Otp.expires_at < utcnow()).delete(synchronize_session=False)
        db.commit()
        return removed


_otp_service: OtpService | None = None


def get_otp_service() -> OtpService:
    """Get singleton OTP service instance."""
    global _otp_service
    if _otp_service is None:
        _otp_service = OtpService(get_settings().OTP_EXPIRE_MINUTES)
    return _otp_service
