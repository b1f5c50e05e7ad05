"""Interfaces for the storage collaborators used by the sync pipeline."""

from pathlib import Path
from typing import Optional, Protocol


class ObjectStore(Protocol):
    """Remote object store holding packaged content archives."""

    async def list_buckets(self) -> list[str]: ...

    async def list_objects(self, bucket: Optional[str] = None) -> list[str]: ...

    async def put_object(self, key: str, data: bytes, public: bool = True) -> str: ...

    async def get_presigned_url(self, key: str, expiration: int = 3600) -> str: ...

    async def delete_object(self, key: str) -> None: ...


class ArchiveExtractor(Protocol):
    """Expands an archive file into a directory tree."""

    def unpack(self, archive_path: Path, destination: Path) -> None: ...
