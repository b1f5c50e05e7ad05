"""Health check endpoint."""

import asyncio
import logging

from fastapi import APIRouter, Depends

from .. import __version__
from ..config import Settings
from ..storage.cache import ContentCache
from ..workers.sync import ContentSyncPipeline
from .deps import get_pipeline, get_settings

logger = logging.getLogger(__name__)
router = APIRouter()


def check_cache_access(cache: ContentCache) -> dict:
    """Check if the content cache directory is writable.

    Returns:
        Status dictionary
    """
    try:
        test_file = cache.root / ".health_check"
        test_file.write_text("ok")
        test_file.unlink()
        return {"status": "healthy", "path": str(cache.root)}
    except OSError as e:
        logger.warning(f"Cache health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


def check_store_connection(settings: Settings, pipeline: ContentSyncPipeline) -> dict:
    """Check if the object store is configured.

    Returns:
        Status dictionary
    """
    if not settings.store_configured:
        return {"status": "not_configured"}
    if pipeline.store is None:
        return {"status": "missing_credentials"}
    return {"status": "configured", "bucket": settings.S3_BUCKET}


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    pipeline: ContentSyncPipeline = Depends(get_pipeline),
) -> dict:
    """Health check endpoint.

    Returns:
        Service health status
    """
    loop = asyncio.get_event_loop()
    cache_status = await loop.run_in_executor(None, check_cache_access, pipeline.cache)

    return {
        "status": "healthy",
        "version": __version__,
        "services": {
            "store": check_store_connection(settings, pipeline),
            "cache": cache_status,
            "sync": {"in_flight": pipeline.in_flight},
        },
    }
