"""Rendering and authoring collaborators."""

from .page import (
    ContentEditor,
    ManifestPageRenderer,
    Renderer,
    inject_resize_script,
)

__all__ = [
    "ContentEditor",
    "ManifestPageRenderer",
    "Renderer",
    "inject_resize_script",
]
