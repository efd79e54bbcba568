"""Media storage for uploaded images."""

import logging
import os
from pathlib import Path

from fastapi import UploadFile

from soilsense.config import get_settings
from soilsense.errors import BadRequestError

logger = logging.getLogger("soilsense")

CHUNK_SIZE = 1024 * 64  # 64KB chunks


class MediaStore:
    """Stores objects under UPLOAD_DIR and serves them from PUBLIC_MEDIA_URL."""

    def __init__(self, root: str, public_url: str) -> None:
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")

    def url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def key_for(self, url: str) -> str | None:
        """Map a public URL back to its key. None for URLs this store does not own."""
        prefix = f"{self.public_url}/"
        if not url or not url.startswith(prefix):
            return None
        key = url[len(prefix) :]
        if ".." in Path(key).parts:
            return None
        return key

    async def save(self, key: str, upload: UploadFile, max_bytes: int) -> tuple[str, int]:
        """Stream an upload to ``key`` with a size limit. Returns (public_url, size_bytes).

        Raises BadRequestError if the upload exceeds ``max_bytes``.
        """
        file_path = self.root / key
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_size = 0

        try:
            with open(file_path, "wb") as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    file_size += len(chunk)
                    if file_size > max_bytes:
                        raise BadRequestError(
                            f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB",
                            reason="FILE_TOO_LARGE",
                        )
                    f.write(chunk)
        except BadRequestError:
            if file_path.exists():
                os.remove(file_path)
            raise

        return self.url_for(key), file_size

    def delete(self, url: str) -> bool:
        """Remove the object behind ``url``. Returns False when the URL is foreign or already gone."""
        key = self.key_for(url)
        if key is None:
            return False
        file_path = self.root / key
        if not file_path.exists():
            return False
        os.remove(file_path)
        return True


_media_store: MediaStore | None = None


def get_media_store() -> MediaStore:
    """Get singleton media store instance."""
    global _media_store
    if _media_store is None:
        settings = get_settings()
        _media_store = MediaStore(settings.UPLOAD_DIR, settings.PUBLIC_MEDIA_URL)
    return _media_store
