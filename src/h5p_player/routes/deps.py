"""Request dependencies resolving collaborators from application state."""

from typing import Optional

from fastapi import HTTPException, Request

from ..config import Settings
from ..models import User
from ..services.page import ContentEditor, Renderer
from ..workers.sync import ContentSyncPipeline

# Fixed identity; authentication is handled outside this service.
DEMO_USER = User(id="1", name="Firstname Surname", email="test@example.com", type="local")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(request: Request) -> ContentSyncPipeline:
    return request.app.state.pipeline


def get_renderer(request: Request) -> Renderer:
    return request.app.state.renderer


def require_editor(request: Request) -> ContentEditor:
    """Return the configured editor.

    Raises:
        HTTPException: 501 if no editor is configured
    """
    editor = request.app.state.editor
    if editor is None:
        raise HTTPException(501, "Editor not configured")
    return editor


def get_current_user() -> Optional[User]:
    """Return the user making the request."""
    return DEMO_USER


def resolve_language(request: Request) -> str:
    """Pick the render language.

    A fixed LANGUAGE_OVERRIDE wins; with "auto" the ``language`` query
    parameter is used, falling back to English.
    """
    override = request.app.state.settings.LANGUAGE_OVERRIDE
    if override != "auto":
        return override
    return request.query_params.get("language") or "en"
