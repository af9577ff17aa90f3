"""
Storage policy for uploaded media.
Maps an upload type tag (e.g. 'gallery', 'logo') to the bucket, folder and
file constraints used when storing it.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from pizzeria_media.config import logger

MB = 1024 * 1024

# Storage bucket names
GALLERY_BUCKET = "gallery"
ADMIN_BUCKET = "admin-uploads"
UPLOADS_BUCKET = "uploads"
SPECIALTIES_BUCKET = "specialties"

STORAGE_BUCKETS = (GALLERY_BUCKET, ADMIN_BUCKET, UPLOADS_BUCKET, SPECIALTIES_BUCKET)

IMAGE_MIME_TYPES: FrozenSet[str] = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}
)
# Unknown upload types get the narrower set used by the generic bucket.
FALLBACK_MIME_TYPES: FrozenSet[str] = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/webp"}
)


@dataclass(frozen=True)
class StorageTarget:
    bucket: str
    folder: str
    accepted_mime_types: FrozenSet[str]
    max_bytes: int


FALLBACK_TARGET = StorageTarget(
    bucket=UPLOADS_BUCKET,
    folder="general",
    accepted_mime_types=FALLBACK_MIME_TYPES,
    max_bytes=5 * MB,
)

_GALLERY_MAIN = StorageTarget(GALLERY_BUCKET, "main", IMAGE_MIME_TYPES, 10 * MB)
_GALLERY_FEATURED = StorageTarget(GALLERY_BUCKET, "featured", IMAGE_MIME_TYPES, 10 * MB)
_PRODUCTS = StorageTarget(ADMIN_BUCKET, "products", IMAGE_MIME_TYPES, 5 * MB)
_CATEGORIES = StorageTarget(ADMIN_BUCKET, "categories", IMAGE_MIME_TYPES, 5 * MB)
_LOGOS = StorageTarget(ADMIN_BUCKET, "logos", IMAGE_MIME_TYPES, 2 * MB)
_BACKGROUNDS = StorageTarget(ADMIN_BUCKET, "backgrounds", IMAGE_MIME_TYPES, 15 * MB)
_SPECIALTIES = StorageTarget(SPECIALTIES_BUCKET, "specialties", IMAGE_MIME_TYPES, 5 * MB)
_ADMIN = StorageTarget(ADMIN_BUCKET, "admin", IMAGE_MIME_TYPES, 5 * MB)
_GENERAL = StorageTarget(UPLOADS_BUCKET, "general", IMAGE_MIME_TYPES, 5 * MB)

# Keyed by normalized tag; several tags alias the same target.
POLICY_TABLE: Dict[str, StorageTarget] = {
    "gallery": _GALLERY_MAIN,
    "gallery-main": _GALLERY_MAIN,
    "gallery-featured": _GALLERY_FEATURED,
    "product": _PRODUCTS,
    "product-image": _PRODUCTS,
    "category": _CATEGORIES,
    "category-image": _CATEGORIES,
    "logo": _LOGOS,
    "background": _BACKGROUNDS,
    "specialty": _SPECIALTIES,
    "specialty-image": _SPECIALTIES,
    "admin": _ADMIN,
    "admin-upload": _ADMIN,
    "general": _GENERAL,
}


def normalize_upload_type(upload_type: Optional[str]) -> str:
    if not isinstance(upload_type, str):
        return ""
    return upload_type.strip().lower()


def resolve(upload_type: Optional[str]) -> StorageTarget:
    """
    Resolve the storage target for an upload type.

    Never raises: empty or unknown tags fall back to the generic uploads
    bucket, and the fallback is logged.

    Args:
        upload_type: Upload type tag as supplied by the caller

    Returns:
        StorageTarget: Fully populated bucket/folder/constraints
    """
    normalized = normalize_upload_type(upload_type)
    target = POLICY_TABLE.get(normalized)
    if target is not None:
        return target

    logger.warning(
        f"Unknown upload type '{upload_type}', using default bucket "
        f"{FALLBACK_TARGET.bucket}/{FALLBACK_TARGET.folder}"
    )
    return FALLBACK_TARGET


def target_for_override(
    upload_type: Optional[str],
    bucket: Optional[str] = None,
    folder: Optional[str] = None,
) -> StorageTarget:
    """
    Resolve a target where an explicit bucket and/or folder wins over policy.

    Size and MIME constraints still come from the resolved policy.
    """
    target = resolve(upload_type)
    if bucket is None and folder is None:
        return target

    return StorageTarget(
        bucket=(bucket or target.bucket).strip(),
        folder=(folder if folder is not None else target.folder).strip().strip("/"),
        accepted_mime_types=target.accepted_mime_types,
        max_bytes=target.max_bytes,
    )


def is_valid_upload_type(upload_type: Optional[str]) -> bool:
    return normalize_upload_type(upload_type) in POLICY_TABLE


def all_bucket_names() -> List[str]:
    return list(STORAGE_BUCKETS)


def is_valid_bucket(bucket: str) -> bool:
    return bucket in STORAGE_BUCKETS
