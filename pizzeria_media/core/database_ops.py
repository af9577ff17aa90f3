"""
Database operations module for the media catalog tables.
Handles insert/delete/select of the rows describing uploaded objects.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from supabase import Client

from pizzeria_media.config import logger
from pizzeria_media.core.errors import DATABASE_LAYER, classify
from pizzeria_media.core.storage_policy import normalize_upload_type

T = TypeVar("T")

DEFAULT_SORT_ORDER = 999

_GALLERY_TYPES = {"gallery", "gallery-main", "gallery-featured"}
_PRODUCT_TYPES = {"product", "product-image"}


class CatalogWriter:
    """Async wrapper over Supabase table operations for catalog rows."""

    def __init__(self, client: Client, *, timeout: float = 30.0):
        self._client = client
        self._timeout = timeout

    async def _call(self, fn: Callable[[], T]) -> T:
        return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout)

    async def insert(self, table: str, record: Dict[str, Any]) -> str:
        """
        Insert a catalog row.

        Args:
            table: Target table
            record: Row data

        Returns:
            str: ID of the created row

        Raises:
            ClassifiedError: database or network failure
        """
        logger.info(f"Creating catalog record in {table}")
        try:
            response = await self._call(
                lambda: self._client.table(table).insert(record).execute()
            )
        except Exception as exc:
            logger.error(f"Error creating catalog record in {table}: {exc!r}")
            raise classify(exc, DATABASE_LAYER) from exc

        if response.data and len(response.data) > 0:
            row = response.data[0]
            record_id = row.get("id") or record.get("id")
        else:
            record_id = record.get("id")

        if not record_id:
            error_msg = f"Failed to create catalog record in {table}: No data returned"
            logger.error(error_msg)
            raise classify(RuntimeError(error_msg), DATABASE_LAYER)

        logger.info(f"Successfully created catalog record {record_id} in {table}")
        return str(record_id)

    async def delete(self, table: str, record_id: str) -> bool:
        """Delete a catalog row. Best effort: failures are logged and reported as False."""
        try:
            logger.info(f"Deleting catalog record {record_id} from {table}")
            await self._call(
                lambda: self._client.table(table).delete().eq("id", record_id).execute()
            )
            return True
        except Exception as exc:
            logger.warning(
                f"Failed to delete catalog record {record_id} from {table}: {exc!r}"
            )
            return False

    async def select_one(self, table: str, **filters: Any) -> Optional[Dict[str, Any]]:
        """Return the first row matching all ``filters``, or None."""

        def run():
            query = self._client.table(table).select("*")
            for column, value in filters.items():
                query = query.eq(column, value)
            return query.limit(1).execute()

        try:
            response = await self._call(run)
        except Exception as exc:
            logger.error(f"Error retrieving catalog record from {table}: {exc!r}")
            raise classify(exc, DATABASE_LAYER) from exc

        if response.data and len(response.data) > 0:
            return response.data[0]
        return None


def build_catalog_row(
    upload_type: Optional[str],
    *,
    public_url: str,
    storage_path: str,
    bucket: str,
    original_name: str,
    size: int,
    mime_type: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the catalog row for an uploaded object.

    Caller metadata is merged last, so it overrides the defaults.
    """
    metadata = dict(metadata or {})
    normalized = normalize_upload_type(upload_type)
    stem = original_name.rsplit(".", 1)[0] if "." in original_name else original_name

    if normalized in _GALLERY_TYPES:
        title = stem
        description = ""
        category = "main"
    elif normalized in _PRODUCT_TYPES:
        title = f"Product Image - {stem}"
        description = "Product image upload"
        category = "product"
    else:
        title = stem
        description = f"{normalized or 'general'} upload"
        category = normalized or "general"

    row: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "title": title,
        "description": description,
        "image_url": public_url,
        "storage_path": storage_path,
        "bucket": bucket,
        "category": category,
        "sort_order": DEFAULT_SORT_ORDER,
        "is_active": True,
        "is_featured": normalized == "gallery-featured",
        "file_size": size,
        "mime_type": mime_type,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    row.update(metadata)
    return row
