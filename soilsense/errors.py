"""Domain errors mapped to HTTP responses by the handlers in main.py.

Errors are raised close to where the failure is detected and pass through the
services untouched. Messages touching credential validity stay generic; the
``reason`` tag is the only detail a caller gets beyond the status code.
"""


class AppError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code: int = 500
    error: str = "Internal Server Error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, reason: str | None = None) -> None:
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    error = "Bad Request"
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    error = "Unauthorized"
    default_message = "Unauthorized"


class NotFoundError(AppError):
    status_code = 404
    error = "Not Found"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    error = "Conflict"
    default_message = "Resource already exists"


class ServiceUnavailableError(AppError):
    status_code = 503
    error = "Service Unavailable"
    default_message = "AI service temporarily unavailable"


class InternalError(AppError):
    pass


# --- Lookups ---


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


# --- One-time codes ---


class OtpInvalidError(BadRequestError):
    default_message = "Invalid OTP code"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, reason="OTP_INVALID")


class OtpExpiredError(BadRequestError):
    default_message = "OTP has expired"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, reason="OTP_EXPIRED")


# --- Bearer tokens ---


class TokenInvalidError(UnauthorizedError):
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, reason="TOKEN_INVALID")


class TokenExpiredError(UnauthorizedError):
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, reason="TOKEN_EXPIRED")


class TokenPurposeError(UnauthorizedError):
    default_message = "Invalid token type"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, reason="TOKEN_PURPOSE_MISMATCH")
