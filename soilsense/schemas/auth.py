"""Pydantic schemas for authentication and profile endpoints."""

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from soilsense.schemas.base import CamelModel

# bcrypt only looks at the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


def check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class SignupRequest(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    gender: str | None = Field(default=None, max_length=32)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class VerifyOtpRequest(CamelModel):
    email: EmailStr
    otp: str = Field(pattern=r"^\d{6}$")


class ResendOtpRequest(CamelModel):
    email: EmailStr


class SigninRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SocialLoginRequest(CamelModel):
    id_token: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class UpdateProfileRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    gender: str | None = Field(default=None, max_length=32)


class UserResponse(CamelModel):
    id: int
    email: str
    name: str
    gender: str | None = None
    profile_image: str | None = None
    auth_provider: str
    is_active: bool
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    access_token: str
    refresh_token: str
    user: UserResponse


class SignupResponse(CamelModel):
    message: str
    user: UserResponse
    otp: str | None = None


class OtpSentResponse(CamelModel):
    message: str
    otp: str | None = None


class ResetTokenResponse(CamelModel):
    message: str
    reset_token: str


class ProfileImageResponse(CamelModel):
    profile_image: str
    user: UserResponse
