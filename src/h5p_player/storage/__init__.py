"""Storage layer: object store, archive extraction and local content cache."""

from .archive import ZipArchiveExtractor
from .cache import CacheEntry, ContentCache, RETAINED_FILES, validate_content_id
from .s3 import S3Storage

__all__ = [
    "CacheEntry",
    "ContentCache",
    "RETAINED_FILES",
    "S3Storage",
    "ZipArchiveExtractor",
    "validate_content_id",
]
