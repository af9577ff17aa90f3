"""File validation utilities for image uploads."""

from typing import TYPE_CHECKING, Dict, Optional

from pizzeria_media.config import logger
from pizzeria_media.core.errors import ClassifiedError, validation_error
from pizzeria_media.core.storage_policy import StorageTarget

if TYPE_CHECKING:
    from pizzeria_media.services.upload_service import UploadRequest

EXTENSION_MIME_TYPES: Dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}

_IMAGE_SIGNATURES = {
    "jpeg": b"\xff\xd8\xff",
    "png": b"\x89PNG",
    "gif": b"GIF",
    "webp": b"RIFF",
    "bmp": b"BM",
}

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``2 MB`` or ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"

    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / (1024**index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {_SIZE_UNITS[index]}"


def file_extension(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()


def looks_like_image(data: bytes) -> bool:
    """Check the leading magic number against common image formats."""
    head = data[:12]
    return any(head.startswith(signature) for signature in _IMAGE_SIGNATURES.values())


def validate(
    request: "UploadRequest", target: StorageTarget
) -> Optional[ClassifiedError]:
    """
    Check an upload request against the constraints of its storage target.

    Args:
        request: The upload request
        target: Resolved storage target

    Returns:
        A validation ClassifiedError, or None when the request is acceptable
    """
    mime_type = (request.mime_type or "").strip().lower()
    if mime_type not in target.accepted_mime_types:
        allowed = ", ".join(sorted(target.accepted_mime_types))
        return validation_error(
            f"Unsupported file type '{request.mime_type or 'unknown'}'. "
            f"Allowed types: {allowed}."
        )

    if request.size > target.max_bytes:
        return validation_error(
            f"File size ({format_file_size(request.size)}) exceeds the "
            f"{format_file_size(target.max_bytes)} limit.",
            status_code=413,
        )

    extension = file_extension(request.filename)
    if not extension:
        return validation_error("File must have a valid image extension.")

    expected_mime = EXTENSION_MIME_TYPES.get(extension)
    if expected_mime is None or expected_mime not in target.accepted_mime_types:
        return validation_error(
            f"File extension .{extension} is not allowed for this upload."
        )

    if request.file_bytes and not looks_like_image(request.file_bytes):
        logger.warning(
            f"File content of {request.filename} does not match a known image "
            f"signature (declared {mime_type})"
        )

    return None
