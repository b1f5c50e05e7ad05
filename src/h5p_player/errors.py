"""Exception hierarchy for content sync, storage and rendering."""


class SyncError(Exception):
    """Base exception for failures while materializing a content package."""

    pass


class StoreError(SyncError):
    """Raised when an object store operation fails."""

    pass


class FetchError(StoreError):
    """Raised when downloading an archive from a presigned URL fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(SyncError):
    """Base exception for archive unpacking failures."""

    pass


class CorruptArchiveError(ExtractionError):
    """Raised when the archive is damaged or contains unsafe member paths."""

    pass


class UnsupportedArchiveError(ExtractionError):
    """Raised when the payload is not a supported archive container."""

    pass


class DestinationNotWritableError(ExtractionError):
    """Raised when extracted files cannot be written to the destination."""

    pass


class PackageLayoutError(ExtractionError):
    """Raised when an unpacked package lacks h5p.json or content.json."""

    pass


class FilesystemError(SyncError):
    """Raised when a cache directory or file operation fails."""

    pass


class ValidationFailure(ValueError):
    """Raised for malformed client input."""

    pass


class InvalidContentIdError(ValidationFailure):
    """Raised when a content id is empty or not path-safe."""

    pass


class ContentNotFoundError(LookupError):
    """Raised when no cache entry exists for a content id."""

    def __init__(self, content_id: str):
        super().__init__(f"Content {content_id} not found")
        self.content_id = content_id
