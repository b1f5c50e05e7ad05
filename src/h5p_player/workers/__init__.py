"""Background workers for materializing content."""

from .sync import ContentSyncPipeline, normalize_package, prune_package

__all__ = [
    "ContentSyncPipeline",
    "normalize_package",
    "prune_package",
]
