"""Pydantic models for users, render options and editor requests."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """The user a page is rendered for."""

    id: str
    name: str
    email: str
    type: str = "local"


class PlayerRenderOptions(BaseModel):
    """Options forwarded to the renderer for a play request."""

    show_copy_button: bool = True
    show_download_button: bool = True
    show_frame: bool = True
    show_h5p_icon: bool = True
    show_license_button: bool = True
    # Scopes per-user state to a sub-context
    context_id: Optional[str] = None
    # View another user's state
    as_user_id: Optional[str] = None
    # Display state without persisting changes
    read_only_state: Optional[bool] = None


class ContentParams(BaseModel):
    """Parameters and metadata submitted by the editor."""

    params: Optional[Any] = None
    metadata: Optional[dict[str, Any]] = None


class ContentSaveRequest(BaseModel):
    """Body of POST /new and POST /edit/{content_id}.

    Every field is optional here so that missing fields produce a 400
    instead of a schema validation error.
    """

    params: Optional[ContentParams] = None
    library: Optional[str] = None

    def is_complete(self) -> bool:
        return (
            self.params is not None
            and self.params.params is not None
            and self.params.metadata is not None
            and bool(self.library)
        )


class ContentSaveResponse(BaseModel):
    """Response for a saved content package."""

    content_id: str = Field(serialization_alias="contentId")
