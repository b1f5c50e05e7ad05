"""In-process zip extraction for H5P packages."""

import logging
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from ..errors import CorruptArchiveError, DestinationNotWritableError, UnsupportedArchiveError

logger = logging.getLogger(__name__)


def _is_safe_member(name: str) -> bool:
    """Check that a member path stays inside the extraction root."""
    normalized = name.replace("\\", "/")
    if not normalized or normalized.startswith("/"):
        return False
    path = PurePosixPath(normalized)
    if ".." in path.parts:
        return False
    # Drive letters such as C:
    return ":" not in path.parts[0]


class ZipArchiveExtractor:
    """Expands zip archives (the H5P container format) into a directory.

    Attributes:
        max_members: Refuse archives with more entries than this
        max_uncompressed_bytes: Refuse archives that expand beyond this size
    """

    def __init__(self, max_members: int = 10_000, max_uncompressed_bytes: int = 2 * 1024 * 1024 * 1024):
        self.max_members = max_members
        self.max_uncompressed_bytes = max_uncompressed_bytes

    def unpack(self, archive_path: Path, destination: Path) -> None:
        """Extract every member of a zip archive into destination.

        Args:
            archive_path: Zip file on disk
            destination: Directory to extract into (created if missing)

        Raises:
            UnsupportedArchiveError: If the file is not a zip archive or uses
                an unsupported compression method
            CorruptArchiveError: If the archive is damaged, too large, or
                contains paths escaping destination
            DestinationNotWritableError: If writing extracted files fails
        """
        if not zipfile.is_zipfile(archive_path):
            raise UnsupportedArchiveError(f"{archive_path.name} is not a zip archive")

        try:
            with zipfile.ZipFile(archive_path) as archive:
                members = archive.infolist()
                self._check_members(members)

                destination.mkdir(parents=True, exist_ok=True)
                for member in members:
                    archive.extract(member, destination)
        except (zipfile.BadZipFile, zlib.error, EOFError) as e:
            raise CorruptArchiveError(f"Corrupt archive {archive_path.name}: {e}") from e
        except NotImplementedError as e:
            raise UnsupportedArchiveError(f"Unsupported archive {archive_path.name}: {e}") from e
        except OSError as e:
            raise DestinationNotWritableError(f"Cannot write to {destination}: {e}") from e

        logger.debug(f"Extracted {len(members)} entries from {archive_path.name} into {destination}")

    def _check_members(self, members: list[zipfile.ZipInfo]) -> None:
        if len(members) > self.max_members:
            raise CorruptArchiveError(f"Archive has too many entries ({len(members)} > {self.max_members})")

        total_size = 0
        for member in members:
            if not _is_safe_member(member.filename):
                raise CorruptArchiveError(f"Unsafe path in archive: {member.filename}")
            total_size += member.file_size

        if total_size > self.max_uncompressed_bytes:
            raise CorruptArchiveError(
                f"Archive expands to {total_size} bytes, limit is {self.max_uncompressed_bytes}"
            )
