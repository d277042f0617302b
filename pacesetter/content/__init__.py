"""Media discovery and the media queue collaborator."""

from .media_scan import MediaType, classify_media, scan_media_directory
from .media_queue import MediaItem, MediaQueue, DirectoryMediaProvider

__all__ = [
    "MediaType",
    "classify_media",
    "scan_media_directory",
    "MediaItem",
    "MediaQueue",
    "DirectoryMediaProvider",
]
