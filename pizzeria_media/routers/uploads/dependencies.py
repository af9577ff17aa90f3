"""FastAPI dependencies shared across upload endpoints."""

from fastapi import HTTPException, Request

from pizzeria_media.config import logger
from pizzeria_media.services import UploadOrchestrator


def get_orchestrator(request: Request) -> UploadOrchestrator:
    """Return the orchestrator attached to the application at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        logger.error("Upload orchestrator is not configured")
        raise HTTPException(status_code=503, detail="Upload service is not configured")
    return orchestrator
