"""Helpers for storage paths and public storage URLs."""

import re
import secrets
import time
from typing import Optional
from urllib.parse import quote

PUBLIC_URL_TEMPLATE = "{base}/storage/v1/object/public/{bucket}/{path}"

_UNSAFE_CHARS = re.compile(r"[^a-z0-9_-]+")


def sanitize_stem(filename: str) -> str:
    """Reduce a filename stem to lowercase letters, digits, dashes and underscores."""
    stem = filename.rsplit("/", 1)[-1]
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    stem = _UNSAFE_CHARS.sub("-", stem.lower()).strip("-")
    return stem[:60] or "image"


def generate_unique_filename(filename: str) -> str:
    """
    Build a collision resistant object name from an uploaded filename.

    Format: ``<stem>-<epoch millis>-<random>.<ext>``
    """
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(6)
    return f"{sanitize_stem(filename)}-{timestamp}-{suffix}.{extension}"


def build_storage_path(folder: Optional[str], filename: str) -> str:
    folder = (folder or "").strip().strip("/")
    if folder:
        return f"{folder}/{filename}"
    return filename


def build_public_url(base_url: str, bucket: str, path: str) -> str:
    return PUBLIC_URL_TEMPLATE.format(
        base=base_url.rstrip("/"),
        bucket=quote(bucket.strip(), safe=""),
        path=quote(path.strip().lstrip("/"), safe="/"),
    )

