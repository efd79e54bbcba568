"""Profile service: field updates and profile image swaps."""

import logging
import time
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.orm import Session

from soilsense.config import get_settings
from soilsense.errors import BadRequestError, UserNotFoundError
from soilsense.models.user import User
from soilsense.services.storage import MediaStore, get_media_store

logger = logging.getLogger("soilsense")

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


class ProfileService:
    """Handles profile reads, updates and image uploads."""

    def __init__(self, store: MediaStore) -> None:
        self.store = store

    def get_profile(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if not user:
            raise UserNotFoundError()
        return user

    def update_profile(self, db: Session, user: User, name: str | None = None, gender: str | None = None) -> User:
        """Apply the provided fields. Omitted fields are left unchanged."""
        if name is not None:
            user.name = name.strip()
        if gender is not None:
            user.gender = gender
        db.commit()
        db.refresh(user)
        return user

    def validate_image(self, upload: UploadFile | None) -> str:
        """Check the upload is an allowed image type. Returns the extension to store it under."""
        if upload is None or not upload.filename:
            raise BadRequestError("No file provided", reason="FILE_MISSING")

        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise BadRequestError(
                "Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed", reason="FILE_TYPE"
            )

        ext = Path(upload.filename).suffix.lower()
        return ext if ext in set(ALLOWED_IMAGE_TYPES.values()) | {".jpeg"} else ALLOWED_IMAGE_TYPES[upload.content_type]

    async def upload_profile_image(self, db: Session, user: User, upload: UploadFile | None) -> User:
        """Store a new profile image, point the user at it and drop the old one."""
        ext = self.validate_image(upload)
        max_bytes = get_settings().MAX_IMAGE_SIZE_MB * 1024 * 1024
        key = f"profiles/{user.id}-{int(time.time() * 1000)}{ext}"

        url, size = await self.store.save(key, upload, max_bytes)

        previous = user.profile_image
        user.profile_image = url
        db.commit()
        db.refresh(user)
        logger.info("User %s uploaded profile image %s (%d bytes)", user.id, key, size)

        if previous and previous != url:
            try:
                self.store.delete(previous)
            except OSError as e:
                logger.warning("Could not delete old profile image %s: %s", previous, e)

        return user


_profile_service: ProfileService | None = None


def get_profile_service() -> ProfileService:
    """Get singleton profile service instance."""
    global _profile_service
    if _profile_service is None:
        _profile_service = ProfileService(get_media_store())
    return _profile_service
