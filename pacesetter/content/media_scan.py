"""Local media discovery with case-insensitive suffix matching."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Sequence


class MediaType(str, Enum):
    IMAGE = "image"
    ANIMATION = "animation"
    VIDEO = "video"


DEFAULT_IMAGE_EXTENSIONS: tuple[str, ...] = (
    ".jpg",
    ".jpeg",
    ".png",
    ".bmp",
    ".webp",
)
DEFAULT_ANIMATION_EXTENSIONS: tuple[str, ...] = (
    ".gif",
)
DEFAULT_VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mp4",
    ".webm",
    ".mkv",
    ".mov",
    ".avi",
)


def _normalize_extensions(exts: Iterable[str]) -> set[str]:
    """Normalize extension strings to the canonical lowercase '.ext' form."""
    normalized: set[str] = set()
    for ext in exts:
        if not ext:
            continue
        ext = ext.lower()
        if not ext.startswith('.'):  # bare "jpg"
            ext = f".{ext}"
        normalized.add(ext)
    return normalized


def classify_media(path: Path | str) -> Optional[MediaType]:
    """Media type for *path* by suffix, or None if it is not media."""
    suffix = Path(path).suffix.lower()
    if suffix in DEFAULT_VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    if suffix in DEFAULT_ANIMATION_EXTENSIONS:
        return MediaType.ANIMATION
    if suffix in DEFAULT_IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    return None


def scan_media_directory(
    root: Path | str,
    *,
    types: Sequence[MediaType] | None = None,
    image_exts: Sequence[str] | None = None,
    video_exts: Sequence[str] | None = None,
) -> list[tuple[str, MediaType]]:
    """Return ``(absolute path, type)`` pairs for media files under *root*.

    Walks the tree once; results are sorted by path so a seeded shuffle over
    them is reproducible. *types* restricts which media types are kept.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        return []

    wanted = set(types) if types else set(MediaType)
    image_suffixes = _normalize_extensions(image_exts or DEFAULT_IMAGE_EXTENSIONS)
    video_suffixes = _normalize_extensions(video_exts or DEFAULT_VIDEO_EXTENSIONS)
    animation_suffixes = _normalize_extensions(DEFAULT_ANIMATION_EXTENSIONS)

    found: list[tuple[str, MediaType]] = []
    for path in root_path.rglob('*'):
        if not path.is_file():
            continue
        suffix = path.suffix.lower()
        if suffix in video_suffixes:
            kind = MediaType.VIDEO
        elif suffix in animation_suffixes:
            kind = MediaType.ANIMATION
        elif suffix in image_suffixes:
            kind = MediaType.IMAGE
        else:
            continue
        if kind in wanted:
            found.append((str(path.resolve(strict=False)), kind))

    found.sort(key=lambda item: item[0])
    return found
