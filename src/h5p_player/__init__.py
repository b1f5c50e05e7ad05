"""H5P content player with object-store backed local cache."""

__version__ = "0.1.0"
