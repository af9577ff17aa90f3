"""FastAPI router for media upload endpoints."""

import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from pizzeria_media.config import logger
from pizzeria_media.core import storage_policy
from pizzeria_media.core.errors import ClassifiedError, ErrorKind
from pizzeria_media.services import UploadOrchestrator, UploadRequest, UploadResult

from .dependencies import get_orchestrator
from .models import (
    BatchUploadResponse,
    StoragePolicyResponse,
    UploadErrorItem,
    UploadResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Media Uploads"])

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STORAGE: 502,
    ErrorKind.DATABASE: 503,
    ErrorKind.NETWORK: 504,
    ErrorKind.UNKNOWN: 500,
}


def status_for(error: ClassifiedError) -> int:
    if error.kind is ErrorKind.VALIDATION and error.status_code in (413, 429):
        return error.status_code
    return _STATUS_BY_KIND[error.kind]


def _parse_metadata(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        metadata = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="metadata must be a JSON object")
    if not isinstance(metadata, dict):
        raise HTTPException(status_code=400, detail="metadata must be a JSON object")
    return metadata


async def _to_request(
    file: UploadFile,
    upload_type: str,
    save_to_database: bool,
    bucket: Optional[str],
    folder: Optional[str],
    metadata: Dict[str, Any],
    max_retries: Optional[int],
) -> UploadRequest:
    data = await file.read()
    return UploadRequest(
        file_bytes=data,
        filename=file.filename or "upload.jpg",
        mime_type=file.content_type or "application/octet-stream",
        upload_type=upload_type,
        bucket_override=bucket or None,
        folder_override=folder,
        save_to_database=save_to_database,
        metadata=metadata,
        max_retries=max_retries,
    )


def _to_response(result: UploadResult) -> UploadResponse:
    return UploadResponse(
        success=True,
        public_url=result.public_url,
        storage_path=result.storage_path,
        bucket=result.bucket,
        catalog_id=result.catalog_id,
        metadata=result.metadata,
    )


@router.post("/uploads", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(..., description="Image to upload"),
    upload_type: str = Form(..., description="Upload type tag, e.g. 'gallery'"),
    save_to_database: bool = Form(True),
    bucket: Optional[str] = Form(None),
    folder: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None, description="JSON object for the catalog row"),
    max_retries: Optional[int] = Form(None),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> UploadResponse:
    """Upload a single image and optionally record it in the catalog."""

    logger.info(f"Upload request received: {file.filename} (type: {upload_type})")
    request = await _to_request(
        file,
        upload_type,
        save_to_database,
        bucket,
        folder,
        _parse_metadata(metadata),
        max_retries,
    )
    result = await orchestrator.upload(request)

    if not result.success:
        error = result.error
        raise HTTPException(status_code=status_for(error), detail=error.message)

    return _to_response(result)


@router.post("/uploads/batch", response_model=BatchUploadResponse)
async def upload_files(
    files: List[UploadFile] = File(..., description="Images to upload"),
    upload_type: str = Form(...),
    save_to_database: bool = Form(True),
    bucket: Optional[str] = Form(None),
    folder: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
) -> BatchUploadResponse:
    """Upload several images one after another and report each outcome."""

    parsed_metadata = _parse_metadata(metadata)
    requests = [
        await _to_request(
            file, upload_type, save_to_database, bucket, folder, parsed_metadata, None
        )
        for file in files
    ]

    batch = await orchestrator.upload_many(requests)

    uploads = [_to_response(result) for result in batch.results if result.success]
    errors = [
        UploadErrorItem(
            filename=request.filename,
            kind=result.error.kind.value,
            message=result.error.message,
            retryable=result.error.retryable,
        )
        for request, result in zip(requests, batch.results)
        if not result.success
    ]

    return BatchUploadResponse(
        success=batch.success,
        succeeded=batch.succeeded,
        total=len(requests),
        uploads=uploads,
        errors=errors,
    )


@router.get("/uploads/policies/{upload_type}", response_model=StoragePolicyResponse)
async def get_storage_policy(upload_type: str) -> StoragePolicyResponse:
    """Describe where files of ``upload_type`` are stored and what is accepted."""

    target = storage_policy.resolve(upload_type)
    return StoragePolicyResponse(
        upload_type=upload_type,
        known=storage_policy.is_valid_upload_type(upload_type),
        bucket=target.bucket,
        folder=target.folder,
        accepted_mime_types=sorted(target.accepted_mime_types),
        max_bytes=target.max_bytes,
    )


@router.get("/health")
async def health_check() -> dict:
    """Simple health check endpoint."""

    return {
        "status": "healthy",
        "service": "pizzeria-media-api",
        "version": "1.0.0",
    }
