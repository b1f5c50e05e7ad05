"""Authoring endpoints delegated to the configured content editor."""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from ..models import ContentSaveRequest, ContentSaveResponse, User
from ..services.page import ContentEditor
from .deps import get_current_user, require_editor, resolve_language

logger = logging.getLogger(__name__)
router = APIRouter()

GO_BACK_LINK = '<br/><a href="javascript:window.location=document.referrer">Go Back</a>'


async def _save(
    editor: ContentEditor,
    content_id: Optional[str],
    request: Optional[ContentSaveRequest],
    user: Optional[User],
) -> Response:
    if request is None or not request.is_complete() or user is None:
        return PlainTextResponse("Malformed request", status_code=400)

    saved_id = await editor.save_or_update_content(
        content_id,
        request.params.params,
        request.params.metadata,
        request.library,
        user,
    )
    logger.info(f"Saved content {saved_id}")
    return JSONResponse(ContentSaveResponse(content_id=saved_id).model_dump(by_alias=True))


@router.get("/edit/{content_id}", response_class=HTMLResponse)
async def edit_content_page(
    content_id: str,
    language: str = Depends(resolve_language),
    user: Optional[User] = Depends(get_current_user),
    editor: ContentEditor = Depends(require_editor),
) -> HTMLResponse:
    """Render the editor for existing content."""
    return HTMLResponse(await editor.render(content_id, language, user))


@router.get("/new", response_class=HTMLResponse)
async def new_content_page(
    language: str = Depends(resolve_language),
    user: Optional[User] = Depends(get_current_user),
    editor: ContentEditor = Depends(require_editor),
) -> HTMLResponse:
    """Render the editor for new content."""
    return HTMLResponse(await editor.render(None, language, user))


@router.post("/edit/{content_id}")
async def update_content(
    content_id: str,
    request: Optional[ContentSaveRequest] = Body(None),
    user: Optional[User] = Depends(get_current_user),
    editor: ContentEditor = Depends(require_editor),
) -> Response:
    """Save changes to existing content."""
    return await _save(editor, content_id, request, user)


@router.post("/new")
async def create_content(
    request: Optional[ContentSaveRequest] = Body(None),
    user: Optional[User] = Depends(get_current_user),
    editor: ContentEditor = Depends(require_editor),
) -> Response:
    """Create new content."""
    return await _save(editor, None, request, user)


@router.get("/delete/{content_id}", response_class=HTMLResponse)
async def delete_content(
    content_id: str,
    user: Optional[User] = Depends(get_current_user),
    editor: ContentEditor = Depends(require_editor),
) -> HTMLResponse:
    """Delete content and link back to the referring page."""
    safe_id = html.escape(content_id)
    try:
        await editor.delete_content(content_id, user)
    except Exception as e:
        logger.error(f"Failed to delete content {content_id}: {e}")
        return HTMLResponse(
            f"Error deleting content with id {safe_id}: {html.escape(str(e))}{GO_BACK_LINK}",
            status_code=500,
        )

    return HTMLResponse(f"Content {safe_id} successfully deleted.{GO_BACK_LINK}")
