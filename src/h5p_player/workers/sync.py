"""Fetch-and-unpack pipeline that materializes content packages locally.

A cache miss runs these steps for a content id:

1. presign the remote object name
2. download the archive into memory
3. write it to a staging directory private to this attempt and unpack it there
4. hoist content/content.json to the package root
5. prune everything except the manifest and content descriptor
6. rename the prepared directory into the cache root

Concurrent misses for the same content id share one population task, so
the steps run at most once at a time per id. Different ids never wait on
each other.
"""

import asyncio
import logging
import shutil
import time
from pathlib import Path
from typing import Optional

import httpx

from ..errors import (
    FetchError,
    FilesystemError,
    PackageLayoutError,
    StoreError,
    SyncError,
    ValidationFailure,
)
from ..storage.archive import ZipArchiveExtractor
from ..storage.base import ArchiveExtractor, ObjectStore
from ..storage.cache import (
    CONTENT_FILE,
    MANIFEST_FILE,
    RETAINED_FILES,
    CacheEntry,
    ContentCache,
    validate_content_id,
)

logger = logging.getLogger(__name__)

DEFAULT_PRESIGN_EXPIRY = 3600
DEFAULT_FETCH_TIMEOUT = 120.0
DEFAULT_MAX_ARCHIVE_BYTES = 512 * 1024 * 1024


def normalize_package(package_dir: Path) -> None:
    """Promote the nested content descriptor to the package root.

    H5P archives keep parameters in content/content.json; the renderer
    expects them next to h5p.json.

    Raises:
        PackageLayoutError: If the manifest or content descriptor is missing
    """
    if not (package_dir / MANIFEST_FILE).is_file():
        raise PackageLayoutError(f"Package has no {MANIFEST_FILE}")

    nested = package_dir / "content" / CONTENT_FILE
    top_level = package_dir / CONTENT_FILE
    if top_level.is_dir():
        raise PackageLayoutError(f"Package has a directory named {CONTENT_FILE}")
    if nested.is_file():
        shutil.copyfile(nested, top_level)
    elif not top_level.is_file():
        raise PackageLayoutError(f"Package has no content/{CONTENT_FILE}")


def prune_package(package_dir: Path) -> None:
    """Delete every entry of package_dir not in RETAINED_FILES."""
    for entry in package_dir.iterdir():
        if entry.name in RETAINED_FILES and entry.is_file():
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


class ContentSyncPipeline:
    """Ensures content packages are present in the local cache.

    Attributes:
        cache: Local content cache
        store: Object store holding the archives (None if not configured)
        extractor: Archive extractor
        presign_expiry: Lifetime of fetch URLs in seconds
        fetch_timeout: Upper bound on a single download in seconds
        max_archive_bytes: Largest archive accepted
    """

    def __init__(
        self,
        cache: ContentCache,
        store: Optional[ObjectStore],
        extractor: Optional[ArchiveExtractor] = None,
        presign_expiry: int = DEFAULT_PRESIGN_EXPIRY,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_archive_bytes: int = DEFAULT_MAX_ARCHIVE_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize sync pipeline.

        Args:
            cache: Local content cache
            store: Object store client
            extractor: Archive extractor (default: zip)
            presign_expiry: Fetch URL lifetime in seconds, must be positive
            fetch_timeout: Download timeout in seconds, capped at presign_expiry
            max_archive_bytes: Largest archive accepted
            transport: Optional httpx transport for downloads
        """
        if presign_expiry <= 0:
            raise ValueError("presign_expiry must be positive")

        self.cache = cache
        self.store = store
        self.extractor = extractor or ZipArchiveExtractor()
        self.presign_expiry = presign_expiry
        self.fetch_timeout = min(fetch_timeout, float(presign_expiry))
        self.max_archive_bytes = max_archive_bytes
        self._transport = transport
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> list[str]:
        """Content ids currently being populated."""
        return sorted(self._inflight)

    async def ensure_cached(self, content_id: str, remote_object_name: str) -> CacheEntry:
        """Return the cache entry for content_id, fetching it on a miss.

        Callers arriving while a population for the same id is running
        wait for it and share its result or error.

        Args:
            content_id: Content identifier
            remote_object_name: Object store key of the packaged archive

        Returns:
            Complete cache entry

        Raises:
            ValidationFailure: If either argument is empty or unsafe
            StoreError: If presigning or downloading fails
            ExtractionError: If the archive cannot be unpacked or normalized
            FilesystemError: If a cache write fails
        """
        validate_content_id(content_id)
        if not remote_object_name:
            raise ValidationFailure("Remote object name must not be empty")

        loop = asyncio.get_event_loop()
        entry = await loop.run_in_executor(None, self.cache.get, content_id)
        if entry is not None:
            return entry

        task = self._inflight.get(content_id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._populate(content_id, remote_object_name))
            self._inflight[content_id] = task
            task.add_done_callback(lambda t, cid=content_id: self._on_done(cid, t))
        else:
            logger.info(f"[{content_id}] Waiting for in-flight sync")

        # Shielded so a disconnecting caller does not abort the shared population
        return await asyncio.shield(task)

    async def shutdown(self) -> None:
        """Cancel in-flight populations and wait for their cleanup."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} in-flight syncs")

    def _on_done(self, content_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(content_id) is task:
            del self._inflight[content_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[{content_id}] Sync failed: {task.exception()}")

    async def _populate(self, content_id: str, remote_object_name: str) -> CacheEntry:
        loop = asyncio.get_event_loop()
        # A population finishing while the caller checked the disk leaves nothing to do
        entry = await loop.run_in_executor(None, self.cache.get, content_id)
        if entry is not None:
            return entry

        start_time = time.time()
        logger.info(f"[{content_id}] Cache miss, syncing from {remote_object_name}")

        if self.store is None:
            raise StoreError("Object store not configured")

        try:
            url = await self.store.get_presigned_url(remote_object_name, self.presign_expiry)
        except SyncError:
            raise
        except Exception as e:
            raise StoreError(f"Could not presign {remote_object_name}: {e}") from e

        payload = await self._download(content_id, url)

        staging = await loop.run_in_executor(None, self.cache.prepare_staging, content_id)
        materialize = loop.run_in_executor(None, self._materialize, content_id, staging, payload)
        try:
            entry = await asyncio.shield(materialize)
        finally:
            # Executor work cannot be interrupted; staging is only removed once it stops
            if not materialize.done():
                await asyncio.wait([materialize])
            await loop.run_in_executor(None, self.cache.discard_staging, staging)

        elapsed = time.time() - start_time
        logger.info(f"[{content_id}] Sync completed in {elapsed:.2f}s")
        return entry

    async def _download(self, content_id: str, url: str) -> bytes:
        """Fetch the archive body, bounded by fetch_timeout and max_archive_bytes."""
        logger.info(f"[{content_id}] Downloading archive...")
        try:
            payload = await asyncio.wait_for(self._read_body(url), timeout=self.fetch_timeout)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(f"Archive download failed with status {status}", status_code=status) from e
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise FetchError(f"Archive download timed out after {self.fetch_timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Archive download failed: {e}") from e

        logger.info(f"[{content_id}] Downloaded {len(payload)} bytes")
        return payload

    async def _read_body(self, url: str) -> bytes:
        body = bytearray()
        async with httpx.AsyncClient(transport=self._transport, timeout=self.fetch_timeout) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_archive_bytes:
                    raise FetchError(f"Archive is {declared} bytes, limit is {self.max_archive_bytes}")

                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_archive_bytes:
                        raise FetchError(f"Archive exceeds {self.max_archive_bytes} bytes")
        return bytes(body)

    def _materialize(self, content_id: str, staging: Path, payload: bytes) -> CacheEntry:
        """Unpack, normalize, prune and publish from staging. Runs in the executor."""
        archive_path = staging / f"{content_id}.zip"
        package_dir = staging / "package"

        try:
            archive_path.write_bytes(payload)
        except OSError as e:
            raise FilesystemError(f"Cannot write staging archive {archive_path}: {e}") from e

        logger.info(f"[{content_id}] Extracting archive...")
        self.extractor.unpack(archive_path, package_dir)

        try:
            normalize_package(package_dir)
            prune_package(package_dir)
            archive_path.unlink()
        except OSError as e:
            raise FilesystemError(f"Cannot normalize package for {content_id}: {e}") from e

        return self.cache.publish(content_id, package_dir)
