"""User model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from soilsense.database import Base, utcnow


class User(Base):
    """Application user."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    name = Column(String(256), nullable=False)
    gender = Column(String(32), nullable=True)
    password_hash = Column(String(256), nullable=False)
    profile_image = Column(String(1024), nullable=True)
    auth_provider = Column(String(32), nullable=False, default="email")  # email, google
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = Column(DateTime, nullable=True)

    otps = relationship("Otp", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    conversations = relationship(
        "Conversation", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    reports = relationship("Report", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
