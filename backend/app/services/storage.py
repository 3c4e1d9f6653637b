import logging
import random
import time
from pathlib import Path

from fastapi import UploadFile

from app.config import Config
from app.errors import ErrorType
from app.exceptions import AppException

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


class ImageStorage:
    """Product images on local disk, referenced from records as ``/uploads/<name>``."""

    def __init__(self, root: str | Path, max_bytes: int = Config.MAX_UPLOAD_BYTES):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    async def save(self, upload: UploadFile) -> str:
        """Validate and write an uploaded image, returning its public path.

        Raises:
            AppException: VALIDATION_ERROR for a rejected file, STORAGE_ERROR if the write fails
        """
        ext = Path(upload.filename or "").suffix.lower()
        content_type = (upload.content_type or "").lower()
        if ext not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
            raise AppException(
                ErrorType.VALIDATION_ERROR,
                "Only image files are allowed (jpeg, jpg, png, gif, webp)"
            )

        data = await upload.read()
        if len(data) > self.max_bytes:
            raise AppException(
                ErrorType.VALIDATION_ERROR,
                f"Image exceeds the {self.max_bytes // (1024 * 1024)}MB limit"
            )

        filename = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
        try:
            self.ensure_root()
            (self.root / filename).write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to store image {filename}: {e}")
            raise AppException(ErrorType.STORAGE_ERROR, "Failed to store image")

        logger.info(f"Stored image {filename} ({len(data)} bytes)")
        return URL_PREFIX + filename

    def resolve(self, image_path: str | None) -> Path | None:
        """Map a ``/uploads/<name>`` reference to a file inside the root."""
        if not image_path or not image_path.startswith(URL_PREFIX):
            return None
        name = image_path[len(URL_PREFIX):]
        candidate = (self.root / name).resolve()
        if candidate.parent != self.root.resolve():
            return None
        return candidate

    def delete(self, image_path: str | None):
        """Best-effort removal; failures are logged, never raised."""
        path = self.resolve(image_path)
        if path is None:
            if image_path:
                logger.warning(f"Refusing to delete image outside upload root: {image_path}")
            return

        try:
            path.unlink(missing_ok=True)
            logger.info(f"Deleted image {image_path}")
        except OSError as e:
            logger.error(f"Error deleting image {image_path}: {e}")


def get_storage() -> ImageStorage:
    return ImageStorage(Config.UPLOAD_DIR)
