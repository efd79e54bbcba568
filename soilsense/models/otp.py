"""One-time passcode model."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from soilsense.database import Base, utcnow


class OtpPurpose(str, enum.Enum):
    """Flow a one-time code is valid for."""

    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"
    PHONE_VERIFICATION = "PHONE_VERIFICATION"


class Otp(Base):
    """Hashed 6-digit code bound to a user and a purpose."""

    __tablename__ = "otp"
    __table_args__ = (
        # At most one unused code per (user, purpose).
        Index(
            "uq_otp_active_user_purpose",
            "user_id",
            "purpose",
            unique=True,
            sqlite_where=text("is_used = 0"),
            postgresql_where=text("is_used = false"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(Enum(OtpPurpose, name="otp_purpose"), nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    is_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="otps")
