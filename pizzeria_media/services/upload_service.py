"""Upload orchestration: validated, retried and self-cleaning media uploads."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pizzeria_media.config import RetryOptions, Settings, logger
from pizzeria_media.core import storage_policy
from pizzeria_media.core.database_ops import CatalogWriter, build_catalog_row
from pizzeria_media.core.errors import (
    CONTACT_ADMIN,
    DATABASE_LAYER,
    STORAGE_LAYER,
    ClassifiedError,
    ErrorKind,
    classify,
    log_upload_error,
)
from pizzeria_media.core.paths import build_storage_path, generate_unique_filename
from pizzeria_media.core.retry import SleepFn, with_retry
from pizzeria_media.core.storage_ops import StorageGateway
from pizzeria_media.core.storage_policy import StorageTarget
from pizzeria_media.core.validation import validate


def _log(level: int, message: str, **context: Any) -> None:
    """Helper to emit structured logs with contextual metadata."""
    logger.log(level, "%s | context=%s", message, context)


class UploadState(str, Enum):
    VALIDATING = "validating"
    WRITING = "writing"
    URL_MINTING = "url_minting"
    CATALOG_INSERTING = "catalog_inserting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadRequest:
    """A single file to upload. Created by the caller and consumed once."""

    file_bytes: bytes
    filename: str
    mime_type: str
    upload_type: str
    size: Optional[int] = None
    bucket_override: Optional[str] = None
    folder_override: Optional[str] = None
    save_to_database: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)
    catalog_table: Optional[str] = None
    max_retries: Optional[int] = None

    def __post_init__(self) -> None:
        if self.size is None:
            object.__setattr__(self, "size", len(self.file_bytes))


@dataclass
class UploadResult:
    """Outcome of one upload: either the success fields or ``error`` is set."""

    success: bool
    public_url: Optional[str] = None
    storage_path: Optional[str] = None
    bucket: Optional[str] = None
    catalog_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ClassifiedError] = None

    def __post_init__(self) -> None:
        if self.success:
            if self.error is not None or not self.public_url or not self.storage_path:
                raise ValueError("successful UploadResult needs a URL and path and no error")
        elif self.error is None or self.public_url or self.storage_path:
            raise ValueError("failed UploadResult needs an error and no URL or path")

    @classmethod
    def failure(cls, error: ClassifiedError) -> "UploadResult":
        return cls(success=False, error=error)


@dataclass
class BatchUploadResult:
    results: List[UploadResult]
    errors: List[str]

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)


class UploadOrchestrator:
    """Runs the upload state machine for one request at a time.

    Holds no per-upload state, so one instance can serve concurrent
    uploads.
    """

    def __init__(
        self,
        storage: StorageGateway,
        catalog: CatalogWriter,
        settings: Optional[Settings] = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        on_state_change: Optional[Callable[[UploadRequest, UploadState], None]] = None,
    ):
        self._storage = storage
        self._catalog = catalog
        self._settings = settings or Settings()
        self._sleep = sleep
        self._on_state_change = on_state_change

    def _enter(self, request: UploadRequest, state: UploadState) -> None:
        logger.debug(f"Upload of {request.filename} entered state {state.value}")
        if self._on_state_change is not None:
            self._on_state_change(request, state)

    def _retry_options(self, request: UploadRequest) -> RetryOptions:
        return self._settings.retry.with_max_retries(request.max_retries)

    def resolve_target(self, request: UploadRequest) -> StorageTarget:
        """Explicit bucket/folder overrides win over policy resolution."""
        return storage_policy.target_for_override(
            request.upload_type,
            bucket=request.bucket_override,
            folder=request.folder_override,
        )

    def _remove_object(self, bucket: str, path: str) -> Callable[[], Awaitable[None]]:
        async def cleanup() -> None:
            await self._storage.remove(bucket, path)

        return cleanup

    def _remove_object_and_row(
        self, bucket: str, path: str, table: str, record_id: str
    ) -> Callable[[], Awaitable[None]]:
        async def cleanup() -> None:
            await self._storage.remove(bucket, path)
            # The insert may have landed before the failure was reported.
            await self._catalog.delete(table, record_id)

        return cleanup

    async def _fail(
        self,
        request: UploadRequest,
        error: ClassifiedError,
        cleanup: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> UploadResult:
        error = error.with_cleanup(cleanup)
        self._enter(request, UploadState.FAILED)
        log_upload_error(
            error,
            file_name=request.filename,
            file_size=request.size,
            upload_type=request.upload_type,
        )
        await self._run_cleanup(error)
        return UploadResult.failure(error)

    async def _run_cleanup(self, error: ClassifiedError) -> None:
        if error.cleanup is None:
            return
        try:
            await error.cleanup()
        except Exception as exc:
            logger.warning(f"Cleanup after failed upload raised: {exc!r}")

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Upload one file and, when requested, record it in the catalog.

        Any failure after the object was written removes the object again,
        so a persisted upload never leaves an object without its row.

        Args:
            request: The upload request

        Returns:
            UploadResult: success fields, or the classified error
        """
        options = self._retry_options(request)
        _log(
            logging.INFO,
            "upload_started",
            file_name=request.filename,
            upload_type=request.upload_type,
            size=request.size,
        )

        # Validating
        self._enter(request, UploadState.VALIDATING)
        target = self.resolve_target(request)
        error = validate(request, target)
        if error is not None:
            return await self._fail(request, error)

        # Writing
        self._enter(request, UploadState.WRITING)
        file_name = generate_unique_filename(request.filename)
        storage_path = build_storage_path(target.folder, file_name)
        bucket = target.bucket
        remove_object = self._remove_object(bucket, storage_path)
        pending_cleanup = remove_object

        try:
            exists = await self._storage.bucket_exists(bucket)
            if exists is False:
                return await self._fail(
                    request,
                    ClassifiedError(
                        ErrorKind.STORAGE,
                        f"Storage bucket '{bucket}' does not exist. {CONTACT_ADMIN}",
                        retryable=False,
                    ),
                )

            try:
                await with_retry(
                    lambda: self._storage.write(
                        bucket, storage_path, request.file_bytes, request.mime_type
                    ),
                    options,
                    layer=STORAGE_LAYER,
                    sleep=self._sleep,
                )
            except ClassifiedError as exc:
                # A timed-out or dropped write may still land after the failure.
                cleanup = remove_object if exc.kind is ErrorKind.NETWORK else None
                return await self._fail(request, exc, cleanup=cleanup)

            # UrlMinting
            self._enter(request, UploadState.URL_MINTING)
            try:
                public_url = self._storage.public_url(bucket, storage_path)
            except Exception as exc:
                return await self._fail(request, classify(exc), cleanup=remove_object)

            # CatalogInserting
            catalog_id: Optional[str] = None
            if request.save_to_database:
                self._enter(request, UploadState.CATALOG_INSERTING)
                table = request.catalog_table or self._settings.default_catalog_table
                row = build_catalog_row(
                    request.upload_type,
                    public_url=public_url,
                    storage_path=storage_path,
                    bucket=bucket,
                    original_name=request.filename,
                    size=request.size,
                    mime_type=request.mime_type,
                    metadata=request.metadata,
                )
                remove_object_and_row = self._remove_object_and_row(
                    bucket, storage_path, table, str(row["id"])
                )
                pending_cleanup = remove_object_and_row
                try:
                    catalog_id = await with_retry(
                        lambda: self._catalog.insert(table, row),
                        options,
                        layer=DATABASE_LAYER,
                        sleep=self._sleep,
                    )
                except ClassifiedError as exc:
                    return await self._fail(
                        request,
                        exc,
                        cleanup=remove_object_and_row,
                    )

        except asyncio.CancelledError:
            logger.warning(
                f"Upload of {request.filename} cancelled, removing partially "
                f"stored object {bucket}/{storage_path}"
            )
            await asyncio.shield(pending_cleanup())
            raise

        # Done
        self._enter(request, UploadState.DONE)
        _log(
            logging.INFO,
            "upload_complete",
            file_name=request.filename,
            bucket=bucket,
            storage_path=storage_path,
            catalog_id=catalog_id,
        )
        return UploadResult(
            success=True,
            public_url=public_url,
            storage_path=storage_path,
            bucket=bucket,
            catalog_id=catalog_id,
            metadata={
                **request.metadata,
                "upload_type": request.upload_type,
                "bucket": bucket,
                "folder": target.folder,
                "file_name": file_name,
                "original_name": request.filename,
                "file_size": request.size,
                "mime_type": request.mime_type,
            },
        )

    async def upload_many(self, requests: List[UploadRequest]) -> BatchUploadResult:
        """Upload files one after another; a failure never undoes earlier successes."""
        _log(logging.INFO, "batch_upload_started", count=len(requests))

        results: List[UploadResult] = []
        errors: List[str] = []
        for request in requests:
            result = await self.upload(request)
            results.append(result)
            if not result.success and result.error is not None:
                errors.append(f"{request.filename}: {result.error.message}")

        batch = BatchUploadResult(results=results, errors=errors)
        _log(
            logging.INFO,
            "batch_upload_complete",
            succeeded=batch.succeeded,
            total=len(requests),
        )
        return batch
