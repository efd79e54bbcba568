"""SoilSense - Agricultural Assistant API."""

import logging
import os
import time
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from soilsense.config import get_settings
from soilsense.errors import AppError
from soilsense.models import conversation, otp, report, user  # noqa: F401
from soilsense.rate_limit import limiter
from soilsense.routers import auth_router, chat_router, reports_router

# Logging
logger = logging.getLogger("soilsense")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
for warning in settings.validate():
    logger.warning("CONFIG: %s", warning)

app = FastAPI(title="SoilSense", version="0.1.0")
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; img-src 'self'; frame-ancestors 'none'"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 20 * 1024 * 1024  # 20MB (base64 images and audio travel in JSON)

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return error_response(request, 413, "Request body too large")
        return await call_next(request)


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = {
        "/auth/signup",
        "/auth/signin",
        "/auth/social-login",
        "/auth/verify-signup-otp",
        "/auth/forgot-password",
        "/auth/verify-reset-otp",
        "/auth/reset-password",
        "/chat/conversations/",
        "/reports",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        # Log sensitive operations
        path = request.url.path
        method = request.method
        if method in ("POST", "PUT", "DELETE") and any(path.startswith(p) for p in self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(AuditLogMiddleware)

# Uploaded media
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
if settings.PUBLIC_MEDIA_URL.startswith("/"):
    app.mount(settings.PUBLIC_MEDIA_URL, StaticFiles(directory=settings.UPLOAD_DIR), name="media")

# API routers
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(reports_router)


# --- Error envelope ---
def error_response(
    request: Request, status_code: int, message: str | list[str], reason: str | None = None
) -> JSONResponse:
    """Uniform error body for every failure the API returns."""
    content = {
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "error": HTTPStatus(status_code).phrase,
        "message": message,
    }
    if reason:
        content["reason"] = reason

    if status_code >= 500:
        logger.error("%s %s -> %d: %s", request.method, request.url.path, status_code, message)
    else:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status_code, message)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Domain errors carry their own status and optional reason tag."""
    return error_response(request, exc.status_code, exc.message, exc.reason)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Validation failures are 400 with one message per offending field."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return error_response(request, 400, messages)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return error_response(request, 409, "Resource already exists")


# --- Rate limit error handler ---
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded."""
    return error_response(request, 429, "Rate limit exceeded. Try again later.")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected is a 500 with no internal detail in the body."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "Internal server error")


# --- Health check ---
@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "soilsense", "version": "0.1.0"}
