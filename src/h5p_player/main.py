"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from . import __version__
from .config import Settings, get_settings
from .logging_config import setup_logging
from .routes import editor, health, play
from .services.page import ContentEditor, ManifestPageRenderer, Renderer
from .storage.base import ArchiveExtractor, ObjectStore
from .storage.cache import ContentCache
from .storage.s3 import S3Storage
from .workers.sync import ContentSyncPipeline

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> Optional[ObjectStore]:
    """Create the object store client if the store is configured.

    Returns:
        Store client, or None when endpoint, bucket or credentials are missing
    """
    if not settings.store_configured:
        logger.warning("Object store not configured; /s3 playback is disabled")
        return None
    try:
        return S3Storage.from_settings(settings)
    except ValueError as e:
        logger.error(f"Object store disabled: {e}")
        return None


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ObjectStore] = None,
    renderer: Optional[Renderer] = None,
    editor_backend: Optional[ContentEditor] = None,
    extractor: Optional[ArchiveExtractor] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application with its collaborators.

    Args:
        settings: Service settings (default: loaded from the environment)
        store: Object store client (default: built from settings)
        renderer: Page renderer (default: ManifestPageRenderer)
        editor_backend: Authoring backend; editor routes return 501 without one
        extractor: Archive extractor (default: zip)
        transport: httpx transport for archive downloads

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)

    cache = ContentCache(settings.CONTENT_CACHE_DIR)
    if store is None:
        store = build_store(settings)

    pipeline = ContentSyncPipeline(
        cache,
        store,
        extractor=extractor,
        presign_expiry=settings.PRESIGNED_URL_EXPIRY,
        fetch_timeout=settings.FETCH_TIMEOUT_SECONDS,
        max_archive_bytes=settings.MAX_ARCHIVE_BYTES,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan.

        Args:
            app: FastAPI application

        Yields:
            None
        """
        logger.info(f"Serving content from {cache.root}")
        yield
        await pipeline.shutdown()

    app = FastAPI(
        title="H5P Player",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.renderer = renderer or ManifestPageRenderer(cache)
    app.state.editor = editor_backend

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(play.create_router(settings.PLAY_URL))
    app.include_router(editor.router)

    @app.get("/")
    async def root() -> dict:
        """Root endpoint.

        Returns:
            Service info
        """
        return {
            "message": "H5P Player",
            "version": __version__,
        }

    return app


def main() -> None:
    """Entry point for running the service directly."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "h5p_player.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
    )


if __name__ == "__main__":
    main()
