"""Authentication service: signup, verification, signin, refresh, password reset, social login."""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from soilsense.database import utcnow
from soilsense.errors import (
    BadRequestError,
    ConflictError,
    TokenExpiredError,
    UnauthorizedError,
    UserNotFoundError,
)
from soilsense.models.otp import OtpPurpose
from soilsense.models.user import User
from soilsense.services.identity import IdentityVerifier, get_identity_verifier
from soilsense.services.jwt import REFRESH, RESET, JWTService, TokenPair, get_jwt_service, password_fingerprint
from soilsense.services.notify import deliver_otp
from soilsense.services.otp import OtpService, get_otp_service
from soilsense.services.passwords import PasswordHasher, get_password_hasher

logger = logging.getLogger("soilsense")

INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class AuthSession:
    """A user together with a freshly issued token pair."""

    user: User
    tokens: TokenPair


@dataclass
class SignupResult:
    user: User
    otp: str


def normalize_email(email: str) -> str:
    return email.lower().strip()


class AuthService:
    """Composes credential checks, one-time codes and token issuance into the auth flows."""

    def __init__(
        self,
        otp_service: OtpService,
        jwt_service: JWTService,
        hasher: PasswordHasher,
        identity_verifier: IdentityVerifier,
    ) -> None:
        self.otp = otp_service
        self.jwt = jwt_service
        self.hasher = hasher
        self.identity = identity_verifier

    def _find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def _start_session(self, db: Session, user: User) -> AuthSession:
        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)
        return AuthSession(user=user, tokens=self.jwt.issue_pair(user))

    def signup(self, db: Session, name: str, email: str, password: str, gender: str | None = None) -> SignupResult:
        """Create an unverified account and send it an email verification code."""
        if self._find_by_email(db, email):
            raise ConflictError("User with this email already exists")

        user = User(
            email=normalize_email(email),
            name=name.strip(),
            gender=gender,
            password_hash=self.hasher.hash(password),
            auth_provider="email",
            is_active=True,
            is_verified=False,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("User %s signed up", user.id)

        code = self.otp.create_otp(db, user.id, OtpPurpose.EMAIL_VERIFICATION)
        deliver_otp(user.email, code, OtpPurpose.EMAIL_VERIFICATION)
        db.refresh(user)
        return SignupResult(user=user, otp=code)

    def verify_signup_otp(self, db: Session, email: str, code: str) -> AuthSession:
        """Consume the verification code, mark the account verified and sign it in."""
        user = self.otp.verify_otp_by_email(db, email, code, OtpPurpose.EMAIL_VERIFICATION)
        user.is_verified = True
        return self._start_session(db, user)

    def resend_signup_otp(self, db: Session, email: str) -> str:
        user = self._find_by_email(db, email)
        if not user:
            raise UserNotFoundError()
        if user.is_verified:
            raise BadRequestError("User is already verified", reason="ALREADY_VERIFIED")

        code = self.otp.resend_otp(db, user.id, OtpPurpose.EMAIL_VERIFICATION)
        deliver_otp(user.email, code, OtpPurpose.EMAIL_VERIFICATION)
        return code

    def signin(self, db: Session, email: str, password: str) -> AuthSession:
        """Authenticate by email and password.

        Unknown email and wrong password fail identically.
        """
        user = self._find_by_email(db, email)
        if not self.hasher.verify(password, user.password_hash if user else None):
            raise UnauthorizedError(INVALID_CREDENTIALS, reason="INVALID_CREDENTIALS")

        if not user.is_active:
            raise UnauthorizedError("User account is not active", reason="ACCOUNT_INACTIVE")

        if not user.is_verified:
            raise UnauthorizedError("Please verify your email before signing in", reason="EMAIL_NOT_VERIFIED")

        return self._start_session(db, user)

    def refresh(self, db: Session, refresh_token: str) -> AuthSession:
        """Reissue a token pair from a valid refresh token. The old token is not revoked."""
        claims = self.jwt.verify(refresh_token, REFRESH)

        user = db.get(User, int(claims["sub"]))
        if not user or not user.is_active or not user.is_verified:
            raise UnauthorizedError("User not found or inactive", reason="ACCOUNT_INACTIVE")

        return AuthSession(user=user, tokens=self.jwt.issue_pair(user))

    def forgot_password(self, db: Session, email: str) -> None:
        """Send a reset code if the account exists. Callers must not reveal which happened."""
        user = self._find_by_email(db, email)
        if not user:
            return

        code = self.otp.create_otp(db, user.id, OtpPurpose.PASSWORD_RESET)
        deliver_otp(user.email, code, OtpPurpose.PASSWORD_RESET)

    def verify_reset_otp(self, db: Session, email: str, code: str) -> str:
        """Exchange a password reset code for a one-hour reset token."""
        user = self._find_by_email(db, email)
        if not user:
            raise BadRequestError("Invalid or expired reset code", reason="OTP_INVALID")

        self.otp.verify_otp(db, user.id, code, OtpPurpose.PASSWORD_RESET)
        return self.jwt.create_reset_token(user)

    def reset_password(self, db: Session, email: str, token: str, new_password: str) -> None:
        """Set a new password given either the 6-digit reset code or a reset token."""
        user = self._find_by_email(db, email)
        if not user:
            raise BadRequestError("Invalid or expired reset code", reason="OTP_INVALID")

        if token.isdigit() and len(token) == 6:
            self.otp.verify_otp(db, user.id, token, OtpPurpose.PASSWORD_RESET, commit=False)
        else:
            self._check_reset_token(user, token)

        user.password_hash = self.hasher.hash(new_password)
        db.commit()
        logger.info("Password reset for user %s", user.id)

    def _check_reset_token(self, user: User, token: str) -> None:
        try:
            claims = self.jwt.verify(token, RESET)
        except TokenExpiredError:
            raise BadRequestError("Invalid or expired reset token", reason="TOKEN_EXPIRED") from None
        except UnauthorizedError:
            raise BadRequestError("Invalid or expired reset token", reason="TOKEN_INVALID") from None

        if claims["sub"] != str(user.id) or claims.get("pwd") != password_fingerprint(user.password_hash):
            raise BadRequestError("Invalid or expired reset token", reason="TOKEN_INVALID")

    def social_login(self, db: Session, id_token: str) -> AuthSession:
        """Sign in with a provider-issued identity token, creating the account on first use."""
        identity = self.identity.verify(id_token)

        user = self._find_by_email(db, identity.email)
        if user:
            if not user.is_active:
                raise UnauthorizedError("User account is not active", reason="ACCOUNT_INACTIVE")
            user.is_verified = True
            if not user.profile_image and identity.picture:
                user.profile_image = identity.picture
        else:
            user = User(
                email=identity.email,
                name=identity.name,
                password_hash=self.hasher.unusable_hash(),
                profile_image=identity.picture,
                auth_provider="google",
                is_active=True,
                is_verified=True,
            )
            db.add(user)
            db.flush()
            logger.info("User %s created via social login", user.id)

        return self._start_session(db, user)


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService(
            otp_service=get_otp_service(),
            jwt_service=get_jwt_service(),
            hasher=get_password_hasher(),
            identity_verifier=get_identity_verifier(),
        )
    return _auth_service
