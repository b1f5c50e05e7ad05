"""Page rendering for cached content packages."""

import asyncio
import html
import json
import logging
from typing import Any, Optional, Protocol

from ..models import PlayerRenderOptions, User
from ..storage.cache import ContentCache

logger = logging.getLogger(__name__)

HEAD_MARKER = "<head>"

# Reports the content height to the embedding page so it can size the iframe.
RESIZE_SCRIPT = """
<meta HTTP-EQUIV="CACHE-CONTROL" CONTENT="NO-CACHE">
<meta HTTP-EQUIV="PRAGMA" CONTENT="NO-CACHE">
<script>
  function sendHeight() {
    const height = document.querySelector('.h5p-content').scrollHeight;
    window.parent.postMessage({ type: 'setHeight', height: height }, '*');
  }

  window.addEventListener('load', function() {
    if (document.readyState === 'complete') {
      setTimeout(sendHeight, 1000);
    } else {
      window.addEventListener('load', () => setTimeout(sendHeight, 1000));
    }
  });
</script>
"""


class Renderer(Protocol):
    """Renders a cached content package to an HTML document."""

    async def render(
        self, content_id: str, user: User, language: str, options: PlayerRenderOptions
    ) -> str: ...


class ContentEditor(Protocol):
    """Authoring backend behind the /edit, /new and /delete routes."""

    async def render(self, content_id: Optional[str], language: str, user: User) -> str: ...

    async def save_or_update_content(
        self,
        content_id: Optional[str],
        params: Any,
        metadata: dict[str, Any],
        library: str,
        user: User,
    ) -> str: ...

    async def delete_content(self, content_id: str, user: User) -> None: ...


def inject_resize_script(page: str) -> str:
    """Insert the iframe resize script right after the first <head> tag.

    Pages without a <head> tag are returned unchanged.
    """
    return page.replace(HEAD_MARKER, HEAD_MARKER + RESIZE_SCRIPT, 1)


def _main_library(manifest: dict[str, Any]) -> str:
    """Return "Machine.Name major.minor" for the manifest's main library."""
    name = manifest.get("mainLibrary", "")
    for dependency in manifest.get("preloadedDependencies", []):
        if dependency.get("machineName") == name:
            return f"{name} {dependency.get('majorVersion')}.{dependency.get('minorVersion')}"
    return name


def _script_json(value: Any) -> str:
    """Serialize JSON for embedding inside a <script> element."""
    return json.dumps(value).replace("</", "<\\/")


class ManifestPageRenderer:
    """Builds a minimal player page from a cache entry.

    The page carries an H5PIntegration object with the content parameters
    so that a client-side H5P runtime can pick it up.
    """

    def __init__(self, cache: ContentCache):
        self.cache = cache

    async def render(
        self, content_id: str, user: User, language: str, options: PlayerRenderOptions
    ) -> str:
        """Render the page for a cached content package.

        Raises:
            ContentNotFoundError: If the content is not cached
        """
        loop = asyncio.get_event_loop()
        manifest, content = await loop.run_in_executor(None, self._load, content_id)
        return self.build_page(content_id, manifest, content, user, language, options)

    def _load(self, content_id: str) -> tuple[dict[str, Any], Any]:
        entry = self.cache.require(content_id)
        return entry.load_manifest(), entry.load_content()

    def build_page(
        self,
        content_id: str,
        manifest: dict[str, Any],
        content: Any,
        user: User,
        language: str,
        options: PlayerRenderOptions,
    ) -> str:
        title = manifest.get("title") or content_id
        integration = {
            "contents": {
                f"cid-{content_id}": {
                    "library": _main_library(manifest),
                    "jsonContent": json.dumps(content),
                    "metadata": {
                        "title": title,
                        "license": manifest.get("license", "U"),
                    },
                    "displayOptions": {
                        "frame": options.show_frame,
                        "export": options.show_download_button,
                        "copyright": options.show_license_button,
                        "icon": options.show_h5p_icon,
                        "copy": options.show_copy_button,
                    },
                    "contextId": options.context_id,
                    "asUserId": options.as_user_id,
                    "readOnlyState": options.read_only_state,
                }
            },
            "user": {"id": user.id, "name": user.name, "mail": user.email},
            "language": language,
        }
        logger.debug(f"Rendering content {content_id} for user {user.id}")

        return (
            "<!doctype html>\n"
            f'<html lang="{html.escape(language)}">\n'
            "<head>\n"
            '<meta charset="utf-8">\n'
            f"<title>{html.escape(title)}</title>\n"
            f"<script>window.H5PIntegration = {_script_json(integration)};</script>\n"
            "</head>\n"
            "<body>\n"
            f'<div class="h5p-content" data-content-id="{html.escape(content_id)}"></div>\n'
            "</body>\n"
            "</html>\n"
        )
