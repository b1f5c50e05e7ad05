"""Shared fixtures: H5P archives, a fake object store and an archive server."""

import asyncio
import io
import json
import zipfile

import httpx
import pytest

from h5p_player.config import Settings
from h5p_player.storage.cache import ContentCache
from h5p_player.workers.sync import ContentSyncPipeline

MANIFEST = {
    "title": "Demo quiz",
    "language": "en",
    "mainLibrary": "H5P.MultiChoice",
    "embedTypes": ["iframe"],
    "license": "U",
    "preloadedDependencies": [
        {"machineName": "H5P.MultiChoice", "majorVersion": 1, "minorVersion": 16},
        {"machineName": "FontAwesome", "majorVersion": 4, "minorVersion": 5},
    ],
}

CONTENT = {
    "question": "<p>What is 2 + 2?</p>",
    "answers": [{"text": "4", "correct": True}, {"text": "5", "correct": False}],
}


def build_archive(files: dict) -> bytes:
    """Build an uncompressed zip from {member name: str or bytes}."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def package_files(manifest=None, content=None) -> dict:
    """Members of a typical exported H5P package."""
    return {
        "h5p.json": json.dumps(manifest or MANIFEST),
        "content/content.json": json.dumps(content or CONTENT),
        "content/images/picture.png": b"\x89PNG fake image",
        "H5P.MultiChoice-1.16/library.json": json.dumps({"machineName": "H5P.MultiChoice"}),
        "H5P.MultiChoice-1.16/js/multichoice.js": "H5P.MultiChoice = function () {};",
    }


class FakeObjectStore:
    """In-memory object store that records presign calls."""

    def __init__(self, objects: dict, base_url: str = "https://store.test"):
        self.objects = dict(objects)
        self.base_url = base_url
        self.presign_calls = []
        self.presign_error = None

    async def list_buckets(self):
        return ["content"]

    async def list_objects(self, bucket=None):
        return sorted(self.objects)

    async def put_object(self, key, data, public=True):
        self.objects[key] = data
        return f"{self.base_url}/content/{key}"

    async def get_presigned_url(self, key, expiration=3600):
        self.presign_calls.append((key, expiration))
        if self.presign_error is not None:
            raise self.presign_error
        return f"{self.base_url}/content/{key}?X-Amz-Expires={expiration}"

    async def delete_object(self, key):
        self.objects.pop(key, None)


class ArchiveServer:
    """httpx mock transport serving FakeObjectStore objects at presigned URLs."""

    def __init__(self, store: FakeObjectStore, delay: float = 0.0):
        self.store = store
        self.delay = delay
        self.requests = []
        self.expired = set()
        self.active = 0
        self.max_active = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        key = request.url.path[len("/content/"):]
        if key in self.expired:
            return httpx.Response(403, text="Request has expired")
        data = self.store.objects.get(key)
        if data is None:
            return httpx.Response(404, text="NoSuchKey")
        return httpx.Response(200, content=data)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def h5p_archive():
    """A valid H5P package with nested content and library folders."""
    return build_archive(package_files())


@pytest.fixture
def object_store(h5p_archive):
    """Fake store holding demo.h5p."""
    return FakeObjectStore({"demo.h5p": h5p_archive})


@pytest.fixture
def archive_server(object_store):
    """Serves the fake store over a mock transport."""
    return ArchiveServer(object_store)


@pytest.fixture
def content_cache(tmp_path):
    """Empty content cache in a temporary directory."""
    return ContentCache(tmp_path / "content")


@pytest.fixture
def pipeline(content_cache, object_store, archive_server):
    """Sync pipeline wired to the fake store and archive server."""
    return ContentSyncPipeline(content_cache, object_store, transport=archive_server.transport)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary cache with a configured store."""
    return Settings(
        _env_file=None,
        CONTENT_CACHE_DIR=tmp_path / "content",
        S3_ENDPOINT="https://store.test",
        S3_BUCKET="content",
        S3_ACCESS_KEY="test-access-key",
        S3_SECRET_KEY="test-secret-key",
    )


@pytest.fixture
def make_archive():
    """Factory turning {member name: data} into zip bytes."""
    return build_archive


@pytest.fixture
def package_members():
    """Members of the standard package, safe to modify per test."""
    return package_files()
