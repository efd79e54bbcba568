"""Authentication dependencies for FastAPI routes."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from soilsense.database import get_db
from soilsense.errors import UnauthorizedError
from soilsense.models.user import User
from soilsense.services.jwt import ACCESS, get_jwt_service


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from an access token in the Authorization header. Raises 401 if invalid."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Not authenticated", reason="TOKEN_MISSING")

    # Refresh and reset tokens are rejected here by purpose
    claims = get_jwt_service().verify(auth_header[7:], ACCESS)

    user = db.get(User, int(claims["sub"]))
    if not user or not user.is_active:
        raise UnauthorizedError("User not found or inactive", reason="ACCOUNT_INACTIVE")
    return user
