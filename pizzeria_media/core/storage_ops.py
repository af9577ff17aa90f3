"""
Storage operations module for Supabase Storage.
Handles writes, removals, listings and public URLs for uploaded media.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from supabase import Client

from pizzeria_media.config import logger
from pizzeria_media.core.errors import STORAGE_LAYER, classify, validation_error
from pizzeria_media.core.paths import build_public_url

T = TypeVar("T")


class StorageGateway:
    """Thin async wrapper over the Supabase storage client.

    The Supabase client is synchronous, so each call runs in a worker
    thread under ``timeout`` seconds. A timed-out write keeps running in
    its thread, so it is tracked until it settles and ``remove`` waits for
    it before deleting. Failures leave this class as ClassifiedError.
    """

    def __init__(
        self,
        client: Client,
        base_url: str,
        *,
        timeout: float = 30.0,
        bucket_cache_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._base_url = base_url
        self._timeout = timeout
        self._bucket_cache_ttl = bucket_cache_ttl
        self._clock = clock
        # bucket name -> time it was last seen in list_buckets()
        self._known_buckets: Dict[str, float] = {}
        # (bucket, path) -> writes whose thread may still be running
        self._inflight: Dict[Tuple[str, str], List[asyncio.Future]] = {}

    async def _call(self, fn: Callable[[], T]) -> T:
        return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout)

    async def _tracked_call(self, key: Tuple[str, str], fn: Callable[[], T]) -> T:
        future = asyncio.ensure_future(asyncio.to_thread(fn))
        self._inflight.setdefault(key, []).append(future)
        future.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.wait_for(asyncio.shield(future), timeout=self._timeout)

    def _forget(self, key: Tuple[str, str], future: asyncio.Future) -> None:
        if not future.cancelled():
            future.exception()
        pending = self._inflight.get(key, [])
        if future in pending:
            pending.remove(future)
        if not pending:
            self._inflight.pop(key, None)

    async def settle(self, bucket: str, path: str) -> None:
        """Wait until no write to ``bucket/path`` is still running."""
        pending = list(self._inflight.get((bucket, path), ()))
        if not pending:
            return
        logger.info(
            f"Waiting for {len(pending)} in-flight write(s) to {bucket}/{path} to finish"
        )
        await asyncio.gather(*pending, return_exceptions=True)

    async def write(self, bucket: str, path: str, data: bytes, mime_type: str) -> None:
        """
        Upload an object, overwriting any object already at ``path``.

        Args:
            bucket: Target bucket
            path: Object path inside the bucket
            data: File content
            mime_type: Content type stored with the object

        Raises:
            ClassifiedError: storage or network failure
        """
        logger.info(f"Uploading object to {bucket}/{path} ({len(data)} bytes)")
        try:
            await self._tracked_call(
                (bucket, path),
                lambda: self._client.storage.from_(bucket).upload(
                    path=path,
                    file=data,
                    file_options={
                        "content-type": mime_type,
                        "cache-control": "3600",
                        "upsert": "true",
                    },
                )
            )
        except Exception as exc:
            logger.error(f"Error uploading object {bucket}/{path}: {exc!r}")
            raise classify(exc, STORAGE_LAYER) from exc

        logger.info(f"Successfully uploaded object {bucket}/{path}")

    async def remove(self, bucket: str, path: str) -> bool:
        """Delete an object. Best effort: failures are logged and reported as False."""
        try:
            await self.settle(bucket, path)
            logger.info(f"Deleting object {bucket}/{path}")
            await self._call(lambda: self._client.storage.from_(bucket).remove([path]))
            logger.info(f"Successfully deleted object {bucket}/{path}")
            return True
        except Exception as exc:
            logger.warning(f"Failed to delete object {bucket}/{path}: {exc!r}")
            return False

    async def list(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]:
        try:
            entries = await self._call(
                lambda: self._client.storage.from_(bucket).list(prefix)
            )
        except Exception as exc:
            logger.error(f"Error listing objects in {bucket}/{prefix}: {exc!r}")
            raise classify(exc, STORAGE_LAYER) from exc
        return list(entries or [])

    def public_url(self, bucket: str, path: str) -> str:
        """
        Public URL for an object, derived without any network call.

        Raises:
            ClassifiedError: validation error when bucket or path is empty
        """
        if not bucket or not bucket.strip():
            raise validation_error("A bucket name is required to build a public URL.")
        if not path or not path.strip():
            raise validation_error("A file path is required to build a public URL.")
        if not self._base_url:
            raise validation_error("Storage base URL is not configured.")

        url = build_public_url(self._base_url, bucket, path)
        logger.debug(f"Generated public URL for {bucket}/{path}: {url}")
        return url

    async def bucket_exists(self, bucket: str) -> Optional[bool]:
        """
        Check whether ``bucket`` exists.

        Returns:
            True/False when the lookup succeeded, None when the lookup itself
            failed and the caller should proceed optimistically
        """
        seen_at = self._known_buckets.get(bucket)
        if seen_at is not None and self._clock() - seen_at < self._bucket_cache_ttl:
            return True

        try:
            buckets = await self._call(self._client.storage.list_buckets)
        except Exception as exc:
            logger.warning(
                f"Could not list buckets while checking {bucket}, "
                f"continuing with upload: {exc!r}"
            )
            return None

        now = self._clock()
        names = {_bucket_name(entry) for entry in buckets or []}
        for name in names:
            if name:
                self._known_buckets[name] = now

        exists = bucket in names
        if not exists:
            self._known_buckets.pop(bucket, None)
            logger.warning(f"Bucket does not exist: {bucket}")
        return exists


def _bucket_name(entry: Any) -> Optional[str]:
    if isinstance(entry, dict):
        return entry.get("name") or entry.get("id")
    return getattr(entry, "name", None) or getattr(entry, "id", None)
