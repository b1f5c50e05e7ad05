"""Tests for player page rendering."""

import json
import re
import threading
from unittest.mock import patch

import pytest

from h5p_player.errors import ContentNotFoundError
from h5p_player.models import PlayerRenderOptions, User
from h5p_player.services.page import RESIZE_SCRIPT, ManifestPageRenderer, inject_resize_script

USER = User(id="7", name="Ada", email="ada@example.com")


def integration_of(page: str) -> dict:
    match = re.search(r"window\.H5PIntegration = (.*);</script>", page)
    assert match is not None
    return json.loads(match.group(1))


class TestInjectResizeScript:
    """Test resize script injection."""

    def test_inserted_after_head(self):
        """Test the script follows the opening head tag."""
        page = inject_resize_script("<html><head><title>x</title></head></html>")

        assert page == "<html><head>" + RESIZE_SCRIPT + "<title>x</title></head></html>"
        assert "setHeight" in page
        assert "NO-CACHE" in page

    def test_only_first_head_is_used(self):
        """Test a second <head> occurrence is left alone."""
        page = inject_resize_script("<head></head><pre><head></pre>")

        assert page.count(RESIZE_SCRIPT) == 1
        assert page.endswith("<pre><head></pre>")

    def test_page_without_head_is_unchanged(self):
        """Test pages lacking a head tag pass through."""
        page = "<html><body>plain</body></html>"
        assert inject_resize_script(page) == page


class TestManifestPageRenderer:
    """Test ManifestPageRenderer class."""

    @pytest.fixture
    def renderer(self, content_cache):
        return ManifestPageRenderer(content_cache)

    @pytest.mark.asyncio
    async def test_render_cached_content(self, renderer, pipeline):
        """Test rendering a synced package."""
        await pipeline.ensure_cached("demo", "demo.h5p")

        page = await renderer.render("demo", USER, "de", PlayerRenderOptions())

        assert page.startswith("<!doctype html>")
        assert '<html lang="de">' in page
        assert "<title>Demo quiz</title>" in page
        assert 'data-content-id="demo"' in page

        integration = integration_of(page)
        content = integration["contents"]["cid-demo"]
        assert content["library"] == "H5P.MultiChoice 1.16"
        assert json.loads(content["jsonContent"])["answers"][0]["text"] == "4"
        assert integration["user"] == {"id": "7", "name": "Ada", "mail": "ada@example.com"}
        assert integration["language"] == "de"

    @pytest.mark.asyncio
    async def test_render_passes_options(self, renderer, pipeline):
        """Test player options reach the integration object."""
        await pipeline.ensure_cached("demo", "demo.h5p")
        options = PlayerRenderOptions(
            show_frame=False, context_id="ctx", as_user_id="9", read_only_state=True
        )

        content = integration_of(await renderer.render("demo", USER, "en", options))["contents"]["cid-demo"]

        assert content["displayOptions"]["frame"] is False
        assert content["displayOptions"]["copy"] is True
        assert content["contextId"] == "ctx"
        assert content["asUserId"] == "9"
        assert content["readOnlyState"] is True

    @pytest.mark.asyncio
    async def test_render_missing_content(self, renderer):
        """Test rendering content that is not cached."""
        with pytest.raises(ContentNotFoundError):
            await renderer.render("absent", USER, "en", PlayerRenderOptions())

    def test_title_falls_back_to_content_id(self, renderer):
        """Test a manifest without a title uses the content id."""
        page = renderer.build_page("abc", {}, {}, USER, "en", PlayerRenderOptions())

        assert "<title>abc</title>" in page

    def test_markup_is_escaped(self, renderer):
        """Test manifest text cannot break out of the page."""
        manifest = {"title": "<b>Quiz</b>", "mainLibrary": "H5P.Text"}
        content = {"text": "</script><script>alert(1)</script>"}

        page = renderer.build_page("abc", manifest, content, USER, "en", PlayerRenderOptions())

        assert "<title>&lt;b&gt;Quiz&lt;/b&gt;</title>" in page
        assert "</script><script>alert(1)" not in page
        assert integration_of(page)["contents"]["cid-abc"]["library"] == "H5P.Text"

    @pytest.mark.asyncio
    async def test_render_reads_cache_off_the_event_loop(self, renderer, pipeline, content_cache):
        """Test the entry lookup and file reads run in the executor."""
        await pipeline.ensure_cached("demo", "demo.h5p")
        threads = []
        lookup = content_cache.require

        def recording_require(content_id):
            threads.append(threading.get_ident())
            return lookup(content_id)

        with patch.object(content_cache, "require", side_effect=recording_require):
            await renderer.render("demo", USER, "en", PlayerRenderOptions())

        assert threads
        assert threading.get_ident() not in threads
