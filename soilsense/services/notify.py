"""Out-of-band delivery of one-time codes by email."""

import logging
import smtplib
from email.mime.text import MIMEText

from soilsense.config import get_settings
from soilsense.models.otp import OtpPurpose

logger = logging.getLogger("soilsense")

SUBJECTS = {
    OtpPurpose.EMAIL_VERIFICATION: "Verify your SoilSense account",
    OtpPurpose.PASSWORD_RESET: "Reset your SoilSense password",
    OtpPurpose.PHONE_VERIFICATION: "Verify your phone number",
}

BODIES = {
    OtpPurpose.EMAIL_VERIFICATION: "Welcome to SoilSense! Your verification code is {code}.",
    OtpPurpose.PASSWORD_RESET: "We received a request to reset your password. Your reset code is {code}.",
    OtpPurpose.PHONE_VERIFICATION: "Your phone verification code is {code}.",
}


def build_message(email: str, code: str, purpose: OtpPurpose, expire_minutes: int) -> MIMEText:
    settings = get_settings()
    text = (
        f"{BODIES[purpose].format(code=code)}\n\n"
        f"This code expires in {expire_minutes} minutes. "
        "If you did not request it, you can ignore this email."
    )
    msg = MIMEText(text, "plain", "utf-8")
    msg["Subject"] = SUBJECTS[purpose]
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"
    msg["To"] = email
    return msg


def deliver_otp(email: str, code: str, purpose: OtpPurpose) -> bool:
    """Email a one-time code. Returns True if the code was handed off.

    In development with no SMTP server configured the code is written to the
    log instead. Elsewhere the code itself is never logged.
    """
    settings = get_settings()

    if not settings.SMTP_HOST:
        if settings.is_development:
            logger.info("[DEV MODE] %s for %s: %s", purpose.value, email, code)
            return True
        logger.error("SMTP_HOST is not set, %s code for %s was not delivered", purpose.value, email)
        return False

    msg = build_message(email, code, purpose, settings.OTP_EXPIRE_MINUTES)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.PROVIDER_TIMEOUT_SECONDS) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAIL_FROM_ADDRESS, [email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send %s email to %s: %s", purpose.value, email, e)
        return False

    logger.info("%s email sent to %s", purpose.value, email)
    return True
