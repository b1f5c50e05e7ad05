"""Content playback endpoints."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from ..errors import ValidationFailure
from ..models import PlayerRenderOptions, User
from ..services.page import Renderer, inject_resize_script
from ..workers.sync import ContentSyncPipeline
from .deps import get_current_user, get_pipeline, get_renderer, resolve_language

logger = logging.getLogger(__name__)

ANONYMOUS_USER = User(id="anonymous", name="Anonymous", email="")


def player_options(
    contextId: Optional[str] = None,
    asUserId: Optional[str] = None,
    readOnlyState: Optional[str] = None,
) -> PlayerRenderOptions:
    """Build render options from the query string.

    Args:
        contextId: Scope user state to a sub-context
        asUserId: Show another user's state
        readOnlyState: "yes" to display state without saving it
    """
    return PlayerRenderOptions(
        context_id=contextId,
        as_user_id=asUserId,
        read_only_state=None if readOnlyState is None else readOnlyState == "yes",
    )


def create_router(play_url: str = "/play") -> APIRouter:
    """Create the playback router.

    Args:
        play_url: Base path of the render-only route

    Returns:
        Router with the sync-and-play and play-only routes
    """
    router = APIRouter()

    @router.get("/s3/{s3_object_name:path}/{content_id}", response_class=HTMLResponse)
    async def play_from_store(
        s3_object_name: str,
        content_id: str,
        options: PlayerRenderOptions = Depends(player_options),
        user: Optional[User] = Depends(get_current_user),
        language: str = Depends(resolve_language),
        pipeline: ContentSyncPipeline = Depends(get_pipeline),
        renderer: Renderer = Depends(get_renderer),
    ) -> Response:
        """Sync the content package if needed, then render it for embedding.

        Returns:
            Player page with the iframe resize script, or the error text
            with status 400/500
        """
        if not content_id:
            raise HTTPException(404)

        try:
            loop = asyncio.get_event_loop()
            if not await loop.run_in_executor(None, pipeline.cache.exists, content_id):
                await pipeline.ensure_cached(content_id, s3_object_name)
            page = await renderer.render(content_id, user or ANONYMOUS_USER, language, options)
        except ValidationFailure as e:
            return PlainTextResponse(str(e), status_code=400)
        except Exception as e:
            logger.error(f"Failed to play {content_id} from {s3_object_name}: {e}")
            return PlainTextResponse(str(e), status_code=500)

        return HTMLResponse(inject_resize_script(page))

    @router.get(f"{play_url.rstrip('/')}/{{content_id}}", response_class=HTMLResponse)
    async def play(
        content_id: str,
        options: PlayerRenderOptions = Depends(player_options),
        user: Optional[User] = Depends(get_current_user),
        language: str = Depends(resolve_language),
        renderer: Renderer = Depends(get_renderer),
    ) -> Response:
        """Render already cached content without syncing."""
        try:
            page = await renderer.render(content_id, user or ANONYMOUS_USER, language, options)
        except Exception as e:
            logger.error(f"Failed to play {content_id}: {e}")
            return PlainTextResponse(str(e), status_code=500)

        return HTMLResponse(page)

    return router
