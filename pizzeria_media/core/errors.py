"""
Error classification for the upload pipeline.
Every failure is turned into a ClassifiedError before it leaves a component,
so callers only ever see a curated message and a retry decision.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from pizzeria_media.config import logger

CleanupFn = Callable[[], Awaitable[None]]

STORAGE_LAYER = "storage"
DATABASE_LAYER = "database"

CONTACT_ADMIN = "Please contact an administrator."


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STORAGE = "storage"
    DATABASE = "database"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ClassifiedError(Exception):
    """A failure normalized into the upload error taxonomy.

    ``message`` is safe to show to end users. The raw failure is kept in
    ``original_error`` for logging only.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retryable: bool,
        *,
        cleanup: Optional[CleanupFn] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.cleanup = cleanup
        self.status_code = status_code
        self.original_error = original_error

    def with_cleanup(self, cleanup: Optional[CleanupFn]) -> "ClassifiedError":
        """Return a copy of this error carrying ``cleanup``."""
        return ClassifiedError(
            self.kind,
            self.message,
            self.retryable,
            cleanup=cleanup,
            status_code=self.status_code,
            original_error=self.original_error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r}, "
            f"retryable={self.retryable})"
        )


def validation_error(message: str, status_code: Optional[int] = None) -> ClassifiedError:
    return ClassifiedError(
        ErrorKind.VALIDATION, message, retryable=False, status_code=status_code
    )


def _raw_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(error)
    if text:
        return text
    return type(error).__name__


def _status_code(error: BaseException) -> Optional[int]:
    """Pull an HTTP status from the common attribute names used by clients."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    for attr in ("status_code", "status", "code", "statusCode"):
        value = getattr(error, attr, None)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit() and len(value) == 3:
            return int(value)
    return None


def _contains(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


def _is_network_exception(error: BaseException) -> bool:
    return isinstance(
        error,
        (
            asyncio.TimeoutError,
            TimeoutError,
            ConnectionError,
            httpx.TimeoutException,
            httpx.TransportError,
        ),
    )


def classify(
    error: Optional[BaseException], layer: Optional[str] = None
) -> ClassifiedError:
    """
    Classify a raw failure.

    More specific, permanent conditions are checked before the broad
    retryable buckets so retry budget is not spent on them.

    Args:
        error: The raw exception (or None)
        layer: Component the failure was raised in ('storage' or 'database')

    Returns:
        ClassifiedError: Normalized error with a user-safe message
    """
    if isinstance(error, ClassifiedError):
        return error

    if error is None:
        return ClassifiedError(
            ErrorKind.UNKNOWN, "Unknown error occurred.", retryable=False
        )

    raw = _raw_message(error)
    text = raw.lower()
    status = _status_code(error)

    def build(
        kind: ErrorKind, message: str, retryable: bool, code: Optional[int] = None
    ) -> ClassifiedError:
        return ClassifiedError(
            kind,
            message,
            retryable,
            status_code=code or status,
            original_error=error,
        )

    # Catalog columns such as storage_path and bucket must not pull a
    # database failure into the storage branches.
    is_storage = layer == STORAGE_LAYER or (
        layer is None and _contains(text, "storage", "bucket")
    )

    if is_storage and _contains(text, "not found", "does not exist"):
        return build(
            ErrorKind.STORAGE,
            f"Storage bucket or object not found. {CONTACT_ADMIN}",
            False,
        )

    if is_storage and _contains(text, "permission", "unauthorized"):
        return build(
            ErrorKind.STORAGE,
            f"Storage permission denied. {CONTACT_ADMIN}",
            False,
        )

    if layer != DATABASE_LAYER and _contains(text, "size", "too large"):
        return build(
            ErrorKind.VALIDATION,
            "File is too large. Please choose a smaller image.",
            False,
            413,
        )

    if is_storage and not _is_network_exception(error):
        return build(
            ErrorKind.STORAGE,
            "Storage error while saving the file. Please try again later.",
            True,
        )

    if layer == DATABASE_LAYER or _contains(text, "database", "relation", "column"):
        if not _is_network_exception(error):
            return build(
                ErrorKind.DATABASE,
                "Database error while saving the image record. Please try again.",
                True,
            )

    if _is_network_exception(error) or _contains(
        text, "network", "fetch", "timeout", "timed out", "connection"
    ):
        return build(
            ErrorKind.NETWORK,
            "Network error. Please check your connection and try again.",
            True,
        )

    if status is not None and 400 <= status < 500:
        if status == 429:
            return build(
                ErrorKind.VALIDATION,
                "Too many requests. Please wait a moment and try again.",
                True,
            )
        return build(
            ErrorKind.VALIDATION,
            f"The upload was rejected by the server (HTTP {status}).",
            False,
        )

    if status is not None and status >= 500:
        return build(
            ErrorKind.NETWORK,
            f"The server failed to handle the upload (HTTP {status}). Please try again later.",
            True,
        )

    return build(ErrorKind.UNKNOWN, "Upload failed. Please try again.", True)


def log_upload_error(error: ClassifiedError, **context: Any) -> None:
    """Log a classified failure together with the upload context."""
    raw_error = repr(error.original_error) if error.original_error else None
    details = ", ".join(f"{key}={value}" for key, value in context.items())
    logger.error(
        f"Upload error ({error.kind.value}, retryable={error.retryable}): "
        f"{error.message} | raw_error={raw_error} | {details}",
        extra={
            "error_kind": error.kind.value,
            "error_message": error.message,
            "retryable": error.retryable,
            "raw_error": raw_error,
            **context,
        },
    )
