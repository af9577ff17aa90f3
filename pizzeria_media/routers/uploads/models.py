"""Pydantic models used by the uploads router."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    """Response model for a successful upload."""

    success: bool
    public_url: str
    storage_path: str
    bucket: str
    catalog_id: Optional[str] = Field(
        None, description="ID of the catalog row, when the upload was persisted"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UploadErrorItem(BaseModel):
    filename: str
    kind: str
    message: str
    retryable: bool


class BatchUploadResponse(BaseModel):
    """Per-file results of a batch upload."""

    success: bool
    succeeded: int
    total: int
    uploads: List[UploadResponse] = Field(default_factory=list)
    errors: List[UploadErrorItem] = Field(default_factory=list)


class StoragePolicyResponse(BaseModel):
    upload_type: str
    known: bool
    bucket: str
    folder: str
    accepted_mime_types: List[str]
    max_bytes: int
