"""FastAPI application factory for the ops endpoints.

Usage:
    uvicorn --factory bibleos_ops.api.app:create_app

    # tests / embedding
    app = create_app(adapter=adapter, storage=storage, mailer=mailer)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bibleos_ops import __version__
from bibleos_ops.adapters.base import DatabaseClient
from bibleos_ops.api.backup import router as backup_router
from bibleos_ops.api.jobs import router as jobs_router
from bibleos_ops.config import OpsConfig, Settings, get_settings, load_ops_config
from bibleos_ops.errors import OpsError
from bibleos_ops.notifications import Mailer
from bibleos_ops.storage import ObjectStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close collaborators the app built itself."""
    yield
    adapter = app.state.adapter
    if adapter is not None and app.state.owns_adapter:
        await adapter.close()


async def ops_error_handler(request: Request, exc: OpsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse({"success": False, "error": str(exc) or "Unknown error"}, status_code=500)


def _load_config(settings: Settings) -> OpsConfig:
    try:
        return load_ops_config(settings.ops_config_path)
    except FileNotFoundError:
        return OpsConfig()


def create_app(
    adapter: DatabaseClient | None = None,
    storage: ObjectStorage | None = None,
    mailer: Mailer | None = None,
    settings: Settings | None = None,
    config: OpsConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="BibleOS Ops",
        description="Tenant backup/restore, retention scan and reminder jobs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ops_config = config or _load_config(settings)
    app.state.adapter = adapter
    app.state.owns_adapter = adapter is None
    app.state.storage = storage
    app.state.mailer = mailer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=[
            "authorization", "x-client-info", "apikey", "content-type", "x-scheduler-secret",
        ],
    )

    app.add_exception_handler(OpsError, ops_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(backup_router)
    app.include_router(jobs_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
