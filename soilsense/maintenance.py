"""Periodic housekeeping, run by an external scheduler.

    python -m soilsense.maintenance
"""

import logging

from soilsense.database import SessionLocal
from soilsense.models import conversation, otp, report, user  # noqa: F401
from soilsense.services.otp import get_otp_service

logger = logging.getLogger("soilsense")


def main() -> int:
    """Delete expired one-time codes. Returns the number removed."""
    db = SessionLocal()
    try:
        removed = get_otp_service().cleanup_expired_otps(db)
    finally:
        db.close()
    logger.info("Removed %d expired OTP codes", removed)
    return removed


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    main()
