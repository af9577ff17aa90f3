"""Service layer wiring storage and catalog clients into the upload orchestrator."""

from typing import Optional

from pizzeria_media.config import Settings
from pizzeria_media.core.database_ops import CatalogWriter
from pizzeria_media.core.storage_ops import StorageGateway
from pizzeria_media.db import supabase_create_client

from .upload_service import (
    BatchUploadResult,
    UploadOrchestrator,
    UploadRequest,
    UploadResult,
    UploadState,
)


def build_orchestrator(settings: Optional[Settings] = None) -> UploadOrchestrator:
    """Create an orchestrator backed by a fresh Supabase client."""
    settings = settings or Settings.from_env()
    client = supabase_create_client(settings)
    storage = StorageGateway(
        client,
        settings.supabase_url or "",
        timeout=settings.operation_timeout,
        bucket_cache_ttl=settings.bucket_cache_ttl,
    )
    catalog = CatalogWriter(client, timeout=settings.operation_timeout)
    return UploadOrchestrator(storage, catalog, settings)


__all__ = [
    "BatchUploadResult",
    "UploadOrchestrator",
    "UploadRequest",
    "UploadResult",
    "UploadState",
    "build_orchestrator",
]
