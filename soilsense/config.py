"""Configuration settings for SoilSense."""

import os
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class SecurityConfig:
    """Immutable secrets and lifetimes handed to the token issuer and password hasher."""

    jwt_secret_key: str
    jwt_algorithm: str
    access_token_ttl: timedelta
    refresh_token_ttl: timedelta = timedelta(days=30)
    reset_token_ttl: timedelta = timedelta(hours=1)
    bcrypt_rounds: int = 10


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./soilsense.db")

    # JWT
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    # Passwords and one-time codes
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))
    OTP_EXPIRE_MINUTES: int = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))
    EXPOSE_OTP_IN_RESPONSE: bool = os.getenv("EXPOSE_OTP_IN_RESPONSE", "false").lower() == "true"

    # Mail
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    EMAIL_FROM_ADDRESS: str = os.getenv("EMAIL_FROM_ADDRESS", "no-reply@soilsense.app")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "SoilSense")

    # Media
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    PUBLIC_MEDIA_URL: str = os.getenv("PUBLIC_MEDIA_URL", "/media")
    MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))

    # Social login
    IDENTITY_TOKENINFO_URL: str = os.getenv("IDENTITY_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo")
    IDENTITY_AUDIENCE: str = os.getenv("IDENTITY_AUDIENCE", "")

    # AI providers
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_API_URL: str = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
    OPENAI_AUDIO_URL: str = os.getenv("OPENAI_AUDIO_URL", "https://api.openai.com/v1/audio/transcriptions")
    DEEPSEEK_API_KEY: str = os.getenv("DEEPSEEK_API_KEY", "")
    DEEPSEEK_API_URL: str = os.getenv("DEEPSEEK_API_URL", "https://api.deepseek.com/chat/completions")
    PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    def security(self) -> SecurityConfig:
        """Build the frozen security config from the current settings."""
        return SecurityConfig(
            jwt_secret_key=self.JWT_SECRET_KEY,
            jwt_algorithm=self.JWT_ALGORITHM,
            access_token_ttl=timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES),
            bcrypt_rounds=self.BCRYPT_ROUNDS,
        )

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if "JWT_SECRET_KEY" not in os.environ:
            errors.append("JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)")
        if self.EXPOSE_OTP_IN_RESPONSE and self.APP_ENV == "production":
            errors.append("EXPOSE_OTP_IN_RESPONSE is enabled in production - one-time codes leak to clients")
        if not self.SMTP_HOST and not self.is_development:
            errors.append("SMTP_HOST is not set - verification and reset codes cannot be delivered")
        if not self.OPENAI_API_KEY:
            errors.append("OPENAI_API_KEY is not set - chat and disease analysis are unavailable")
        if not self.DEEPSEEK_API_KEY:
            errors.append("DEEPSEEK_API_KEY is not set - fertilizer and crop recommendations are unavailable")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
