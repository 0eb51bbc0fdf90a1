# tests/unit/test_image_upload.py

import base64

import pytest

from oss_booking.application.image_upload_service import (
    MAX_IMAGE_BYTES,
    ImageUploadService,
    detect_image_type,
    sanitize_filename,
)
from oss_booking.domain.exceptions import RequestValidationFailed, StorageError
from tests.helpers import JPEG_BYTES, PNG_BYTES, FakeStorage


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_sanitize_filename_keeps_safe_stem():
    assert sanitize_filename("My Photo (1).png") == "My-Photo-1"
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\cover.jpg") == "cover"


@pytest.mark.parametrize("name", ["", ".env", "..", "a..b.png"])
def test_sanitize_filename_rejects_dangerous_names(name):
    with pytest.raises(RequestValidationFailed, match="Invalid filename"):
        sanitize_filename(name)


def test_magic_byte_detection():
    assert detect_image_type(PNG_BYTES) == "image/png"
    assert detect_image_type(JPEG_BYTES) == "image/jpeg"
    assert detect_image_type(b"GIF89a" + b"\x00" * 10) == "image/gif"
    assert detect_image_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert detect_image_type(b"%PDF-1.7") is None


def test_upload_stores_under_folder():
    storage = FakeStorage()
    service = ImageUploadService(storage, bucket="Assets")

    uploaded = service.upload("data:image/png;base64," + _b64(PNG_BYTES), "cover art.png", folder="events")

    assert uploaded.path.startswith("events/")
    assert uploaded.path.endswith("-cover-art.png")
    assert uploaded.url == f"https://cdn.example.com/Assets/{uploaded.path}"
    assert storage.objects[("Assets", uploaded.path)] == (PNG_BYTES, "image/png")


def test_upload_rejects_unknown_folder():
    with pytest.raises(RequestValidationFailed, match="Invalid folder"):
        ImageUploadService(FakeStorage()).upload(_b64(PNG_BYTES), "a.png", folder="secrets")


def test_upload_rejects_non_images():
    with pytest.raises(RequestValidationFailed, match="Invalid image type"):
        ImageUploadService(FakeStorage()).upload(_b64(b"%PDF-1.7 fake"), "a.png")


def test_upload_rejects_mismatched_declared_type():
    with pytest.raises(RequestValidationFailed, match="does not match"):
        ImageUploadService(FakeStorage()).upload("data:image/png;base64," + _b64(JPEG_BYTES), "a.png")


def test_upload_rejects_oversized_images():
    big = PNG_BYTES + b"\x00" * MAX_IMAGE_BYTES
    with pytest.raises(RequestValidationFailed, match="less than 5MB"):
        ImageUploadService(FakeStorage()).upload(_b64(big), "a.png")


def test_upload_rejects_bad_base64():
    with pytest.raises(RequestValidationFailed, match="Invalid image data"):
        ImageUploadService(FakeStorage()).upload("not base64!!", "a.png")


def test_upload_without_storage_fails():
    with pytest.raises(StorageError):
        ImageUploadService(None).upload(_b64(PNG_BYTES), "a.png")
