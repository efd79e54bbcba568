"""JWT Token Service."""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from soilsense.config import SecurityConfig, get_settings
from soilsense.errors import TokenExpiredError, TokenInvalidError, TokenPurposeError
from soilsense.models.user import User

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"


@dataclass
class TokenPair:
    """Access and refresh tokens issued together."""

    access_token: str
    refresh_token: str


def password_fingerprint(password_hash: str) -> str:
    """Short digest of the stored hash. Changes whenever the password does."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


class JWTService:
    """Issues and validates purpose-tagged bearer tokens."""

    def __init__(self, config: SecurityConfig) -> None:
        self.config = config

    def _encode(self, user: User, purpose: str, ttl: timedelta, **extra: Any) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "purpose": purpose,
            "iat": now,
            "exp": now + ttl,
            **extra,
        }
        return jwt.encode(payload, self.config.jwt_secret_key, algorithm=self.config.jwt_algorithm)

    def create_access_token(self, user: User) -> str:
        return self._encode(user, ACCESS, self.config.access_token_ttl)

    def create_refresh_token(self, user: User) -> str:
        return self._encode(user, REFRESH, self.config.refresh_token_ttl)

    def create_reset_token(self, user: User) -> str:
        """Reset token bound to the current password hash, so it is spent once the password changes."""
        return self._encode(user, RESET, self.config.reset_token_ttl, pwd=password_fingerprint(user.password_hash))

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=self.create_refresh_token(user),
        )

    def verify(self, token: str, purpose: str) -> dict[str, Any]:
        """Decode a token and check it was minted for ``purpose``.

        Raises TokenExpiredError, TokenInvalidError or TokenPurposeError.
        """
        try:
            claims = jwt.decode(token, self.config.jwt_secret_key, algorithms=[self.config.jwt_algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError() from None
        except JWTError:
            raise TokenInvalidError() from None

        if not claims.get("sub") or not str(claims["sub"]).isdigit() or "email" not in claims:
            raise TokenInvalidError()
        if claims.get("purpose") != purpose:
            raise TokenPurposeError()
        return claims


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService(get_settings().security())
    return _jwt_service
