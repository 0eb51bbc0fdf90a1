# oss_booking/application/image_upload_service.py

import base64
import binascii
import logging
import os
import re
import time
from dataclasses import dataclass

from oss_booking.domain.exceptions import RequestValidationFailed, StorageError
from oss_booking.infrastructure.storage import ObjectStorage

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_FOLDERS = {"classes", "events", "general"}

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,")
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class UploadedImage:
    url: str
    path: str


def sanitize_filename(filename: str) -> str:
    """Strip path components and reject dangerous filenames.

    Returns the basename stem with anything outside [A-Za-z0-9._-]
    collapsed to a dash.
    """
    basename = os.path.basename(filename.replace("\\", "/"))
    if not basename or basename.startswith(".") or ".." in basename:
        raise RequestValidationFailed("Invalid filename")

    stem = os.path.splitext(basename)[0]
    stem = UNSAFE_FILENAME_CHARS.sub("-", stem).strip("-.")
    if not stem:
        raise RequestValidationFailed("Invalid filename")
    return stem[:100]


def detect_image_type(data: bytes) -> str | None:
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def decode_image(image: str) -> tuple[bytes, str | None]:
    """Split an optional data URL prefix off and decode the base64 payload."""
    declared_mime = None
    match = DATA_URL_PATTERN.match(image)
    if match:
        declared_mime = match.group("mime").lower()
        image = image[match.end():]

    try:
        return base64.b64decode(image, validate=True), declared_mime
    except (binascii.Error, ValueError) as exc:
        raise RequestValidationFailed("Invalid image data") from exc


class ImageUploadService:

    def __init__(self, storage: ObjectStorage | None, bucket: str = "Assets"):
        self.storage = storage
        self.bucket = bucket

    def upload(self, image: str, file_name: str, folder: str = "classes") -> UploadedImage:
        if folder not in ALLOWED_FOLDERS:
            raise RequestValidationFailed("Invalid folder")
        stem = sanitize_filename(file_name)

        data, declared_mime = decode_image(image)
        if len(data) > MAX_IMAGE_BYTES:
            raise RequestValidationFailed("Image size must be less than 5MB")

        mime_type = detect_image_type(data)
        if mime_type is None:
            raise RequestValidationFailed("Invalid image type. Allowed: JPEG, PNG, WebP, GIF")
        if declared_mime and declared_mime != mime_type:
            raise RequestValidationFailed("Image content does not match declared type")

        if self.storage is None:
            logger.error("Image upload attempted without object storage configured")
            raise StorageError("Object storage is not configured")

        extension = mime_type.split("/")[1]
        path = f"{folder}/{int(time.time() * 1000)}-{stem}.{extension}"
        url = self.storage.upload(self.bucket, path, data, mime_type)

        logger.info("Image uploaded path=%s bytes=%s", path, len(data))
        return UploadedImage(url=url, path=path)
