"""Local disk cache of unpacked content packages.

Layout::

    <root>/<content_id>/h5p.json              package manifest
    <root>/<content_id>/content.json          content parameters
    <root>/.staging/<content_id>@<random>/    one in-progress population (never read)

An entry directory only ever appears through an atomic rename of a fully
prepared staging directory, so its presence means it is complete.
"""

import json
import logging
import os
import re
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..errors import ContentNotFoundError, FilesystemError, InvalidContentIdError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "h5p.json"
CONTENT_FILE = "content.json"
RETAINED_FILES = (MANIFEST_FILE, CONTENT_FILE)
STAGING_DIR = ".staging"
# Never valid inside a content id, so staging names cannot collide across ids
STAGING_SEPARATOR = "@"
STALE_STAGING_SECONDS = 3600

_CONTENT_ID_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]{0,254}$")


def validate_content_id(content_id: str) -> str:
    """Check that a content id is non-empty and safe to use as a directory name.

    Args:
        content_id: Content identifier

    Returns:
        The content id unchanged

    Raises:
        InvalidContentIdError: If the id is empty or not path-safe
    """
    if not content_id:
        raise InvalidContentIdError("Content id must not be empty")
    if not _CONTENT_ID_RE.match(content_id):
        raise InvalidContentIdError(f"Invalid content id: {content_id!r}")
    return content_id


@dataclass(frozen=True)
class CacheEntry:
    """A materialized content package.

    Attributes:
        content_id: Content identifier
        path: Entry directory
    """

    content_id: str
    path: Path

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_FILE

    @property
    def content_path(self) -> Path:
        return self.path / CONTENT_FILE

    def load_manifest(self) -> dict[str, Any]:
        """Parse h5p.json."""
        return json.loads(self.manifest_path.read_text(encoding="utf-8"))

    def load_content(self) -> Any:
        """Parse content.json."""
        return json.loads(self.content_path.read_text(encoding="utf-8"))


class ContentCache:
    """Manages the on-disk namespace of content entries."""

    def __init__(self, root: Path, stale_staging_seconds: float = STALE_STAGING_SECONDS):
        """Initialize content cache.

        Args:
            root: Cache root directory
            stale_staging_seconds: Age after which an abandoned staging
                directory may be removed by a later population
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.stale_staging_seconds = stale_staging_seconds

    @property
    def staging_root(self) -> Path:
        return self.root / STAGING_DIR

    def entry_path(self, content_id: str) -> Path:
        """Return the entry directory for a content id."""
        return self.root / validate_content_id(content_id)

    def staging_dirs(self, content_id: str) -> list[Path]:
        """Return the staging directories currently present for a content id."""
        prefix = validate_content_id(content_id) + STAGING_SEPARATOR
        if not self.staging_root.is_dir():
            return []
        return sorted(path for path in self.staging_root.glob(f"{prefix}*") if path.is_dir())

    def exists(self, content_id: str) -> bool:
        """Check whether an entry is present.

        Presence alone marks an entry as valid; contents are not re-checked.
        """
        return self.entry_path(content_id).is_dir()

    def get(self, content_id: str) -> Optional[CacheEntry]:
        """Return the entry for a content id, or None if absent."""
        path = self.entry_path(content_id)
        if path.is_dir():
            return CacheEntry(content_id=content_id, path=path)
        return None

    def require(self, content_id: str) -> CacheEntry:
        """Return the entry for a content id.

        Raises:
            ContentNotFoundError: If the entry is absent
        """
        entry = self.get(content_id)
        if entry is None:
            raise ContentNotFoundError(content_id)
        return entry

    def list_entries(self) -> list[CacheEntry]:
        """Return all materialized entries, sorted by content id."""
        return [
            CacheEntry(content_id=path.name, path=path)
            for path in sorted(self.root.iterdir())
            if path.is_dir() and path.name != STAGING_DIR
        ]

    def prepare_staging(self, content_id: str) -> Path:
        """Create a fresh staging directory owned by one population.

        Every call gets its own directory, so populations of the same id in
        other processes sharing this root are never touched. Directories of
        the same id left behind by a crashed attempt are removed once they
        are older than stale_staging_seconds.

        Returns:
            Path of the new, empty staging directory

        Raises:
            FilesystemError: If the directory cannot be created
        """
        validate_content_id(content_id)
        self.sweep_stale_staging(content_id)
        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
            staging = tempfile.mkdtemp(prefix=content_id + STAGING_SEPARATOR, dir=self.staging_root)
        except OSError as e:
            raise FilesystemError(f"Cannot prepare staging directory in {self.staging_root}: {e}") from e
        return Path(staging)

    def sweep_stale_staging(self, content_id: str) -> int:
        """Best-effort removal of abandoned staging directories for a content id.

        Returns:
            Number of directories removed
        """
        cutoff = time.time() - self.stale_staging_seconds
        removed = 0
        for staging in self.staging_dirs(content_id):
            try:
                if staging.stat().st_mtime > cutoff:
                    continue
            except OSError:
                continue
            logger.warning(f"[{content_id}] Removing stale staging directory {staging}")
            shutil.rmtree(staging, ignore_errors=True)
            removed += 1
        return removed

    def discard_staging(self, staging: Path) -> None:
        """Remove a staging directory returned by prepare_staging."""
        shutil.rmtree(staging, ignore_errors=True)
        if staging.exists():
            logger.error(f"Could not remove staging directory {staging}")

    def publish(self, content_id: str, prepared_dir: Path) -> CacheEntry:
        """Atomically move a prepared directory into place as the entry.

        If another writer published the same content id first, the prepared
        directory is discarded and the existing entry is returned.

        Args:
            content_id: Content identifier
            prepared_dir: Fully normalized directory on the same filesystem

        Returns:
            The published entry

        Raises:
            FilesystemError: If the rename fails for any other reason
        """
        target = self.entry_path(content_id)
        try:
            os.rename(prepared_dir, target)
        except OSError as e:
            if target.is_dir():
                logger.info(f"[{content_id}] Entry already published by another writer")
                shutil.rmtree(prepared_dir, ignore_errors=True)
                return CacheEntry(content_id=content_id, path=target)
            raise FilesystemError(f"Cannot publish {content_id} to {target}: {e}") from e
        return CacheEntry(content_id=content_id, path=target)

    def remove(self, content_id: str) -> bool:
        """Delete an entry.

        Returns:
            True if an entry was removed

        Raises:
            FilesystemError: If the entry exists but cannot be removed
        """
        target = self.entry_path(content_id)
        if not target.is_dir():
            return False
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise FilesystemError(f"Cannot remove {target}: {e}") from e
        return True
