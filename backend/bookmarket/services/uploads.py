import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status

from bookmarket.config import settings
from bookmarket.utils.logger import logger

ALLOWED_IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
ALLOWED_IMAGE_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}

UPLOAD_URL_PREFIX = "/uploads"


def ensure_upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


async def save_listing_image(image: Optional[UploadFile]) -> Optional[str]:
    """Persist an uploaded listing image and return its public URL.

    Returns None when no file was sent. Rejects anything that is not a
    jpeg/png/gif by both extension and content type, or that exceeds
    MAX_UPLOAD_BYTES.
    """
    if image is None or not image.filename:
        return None

    ext = os.path.splitext(image.filename)[1].lower()
    content_type = (image.content_type or "").lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS or content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed"
        )

    data = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit"
        )

    filename = f"{uuid.uuid4().hex}{ext}"
    target = ensure_upload_dir() / filename
    with open(target, "wb") as fh:
        fh.write(data)

    logger.info(f"Stored listing image {filename} ({len(data)} bytes)")
    return f"{UPLOAD_URL_PREFIX}/{filename}"
