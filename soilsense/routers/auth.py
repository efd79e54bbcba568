"""Authentication and profile API endpoints."""

import logging
from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Request, UploadFile
from sqlalchemy.orm import Session

from soilsense.config import get_settings
from soilsense.database import SessionLocal, get_db
from soilsense.dependencies import get_current_user
from soilsense.models.user import User
from soilsense.rate_limit import limiter
from soilsense.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    OtpSentResponse,
    ProfileImageResponse,
    RefreshTokenRequest,
    ResendOtpRequest,
    ResetPasswordRequest,
    ResetTokenResponse,
    SigninRequest,
    SignupRequest,
    SignupResponse,
    SocialLoginRequest,
    UpdateProfileRequest,
    UserResponse,
    VerifyOtpRequest,
)
from soilsense.schemas.base import MessageResponse
from soilsense.services.auth import AuthSession, get_auth_service
from soilsense.services.profile import get_profile_service

logger = logging.getLogger("soilsense")

router = APIRouter(prefix="/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset code has been sent"

# Session factory for work done after the response is sent (overridable in tests)
_session_factory: Callable[[], Session] | None = None


def _auth_response(session: AuthSession) -> AuthResponse:
    return AuthResponse(
        access_token=session.tokens.access_token,
        refresh_token=session.tokens.refresh_token,
        user=UserResponse.model_validate(session.user),
    )


def _send_password_reset(email: str) -> None:
    """Issue and deliver a reset code, if the account exists, outside the request."""
    factory = _session_factory or SessionLocal
    db = factory()
    try:
        get_auth_service().forgot_password(db, email)
    finally:
        db.close()


@router.post("/signup", response_model=SignupResponse, status_code=201, response_model_exclude_unset=True)
@limiter.limit("5/minute")
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)) -> SignupResponse:
    """Register a new account. A verification code is sent to the email."""
    result = get_auth_service().signup(db, body.name, body.email, body.password, body.gender)
    response = SignupResponse(
        message="User created successfully. Please verify your email with the OTP sent.",
        user=UserResponse.model_validate(result.user),
    )
    if get_settings().EXPOSE_OTP_IN_RESPONSE:
        response.otp = result.otp
    return response


@router.post("/verify-signup-otp", response_model=AuthResponse)
@limiter.limit("10/minute")
def verify_signup_otp(request: Request, body: VerifyOtpRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Verify the signup code and receive tokens."""
    session = get_auth_service().verify_signup_otp(db, body.email, body.otp)
    return _auth_response(session)


@router.post("/resend-signup-otp", response_model=OtpSentResponse, response_model_exclude_unset=True)
@limiter.limit("3/minute")
def resend_signup_otp(request: Request, body: ResendOtpRequest, db: Session = Depends(get_db)) -> OtpSentResponse:
    """Send a fresh verification code, superseding the previous one."""
    code = get_auth_service().resend_signup_otp(db, body.email)
    response = OtpSentResponse(message="OTP sent successfully")
    if get_settings().EXPOSE_OTP_IN_RESPONSE:
        response.otp = code
    return response


@router.post("/signin", response_model=AuthResponse)
@limiter.limit("10/minute")
def signin(request: Request, body: SigninRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Authenticate with email and password."""
    session = get_auth_service().signin(db, body.email, body.password)
    return _auth_response(session)


@router.post("/social-login", response_model=AuthResponse)
@limiter.limit("10/minute")
def social_login(request: Request, body: SocialLoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Sign in with an identity provider token, creating the account on first use."""
    session = get_auth_service().social_login(db, body.id_token)
    return _auth_response(session)


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit("20/minute")
def refresh(request: Request, body: RefreshTokenRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Exchange a refresh token for a new token pair."""
    session = get_auth_service().refresh(db, body.refresh_token)
    return _auth_response(session)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request, body: ForgotPasswordRequest, background_tasks: BackgroundTasks
) -> MessageResponse:
    """Request a password reset code. The response is the same whether or not the email exists."""
    background_tasks.add_task(_send_password_reset, body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/verify-reset-otp", response_model=ResetTokenResponse)
@limiter.limit("5/minute")
def verify_reset_otp(request: Request, body: VerifyOtpRequest, db: Session = Depends(get_db)) -> ResetTokenResponse:
    """Exchange a password reset code for a short-lived reset token."""
    token = get_auth_service().verify_reset_otp(db, body.email, body.otp)
    return ResetTokenResponse(message="OTP verified successfully", reset_token=token)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Set a new password using the reset code or a reset token."""
    get_auth_service().reset_password(db, body.email, body.token, body.new_password)
    return MessageResponse(message="Password reset successfully")


# --- Profile ---


@router.get("/profile", response_model=UserResponse)
def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    """Get the current user's profile."""
    return UserResponse.model_validate(user)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Update name and/or gender."""
    updated = get_profile_service().update_profile(db, user, name=body.name, gender=body.gender)
    return UserResponse.model_validate(updated)


@router.post("/upload-profile-image", response_model=ProfileImageResponse)
@limiter.limit("10/minute")
async def upload_profile_image(
    request: Request,
    file: UploadFile | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProfileImageResponse:
    """Upload a new profile image (JPEG, PNG, WebP or GIF)."""
    updated = await get_profile_service().upload_profile_image(db, user, file)
    return ProfileImageResponse(profile_image=updated.profile_image, user=UserResponse.model_validate(updated))
