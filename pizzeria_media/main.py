from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pizzeria_media.config import logger
from pizzeria_media.services import UploadOrchestrator, build_orchestrator

from .routers import router


def create_app(orchestrator: Optional[UploadOrchestrator] = None) -> FastAPI:
    """Build the API; without an orchestrator one is created from the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = build_orchestrator()
        yield

    app = FastAPI(
        title="Pizzeria Media API",
        description="Image uploads for the restaurant gallery, menu and branding",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.include_router(router)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info("Pizzeria Media API initialized successfully")
    return app


app = create_app()
