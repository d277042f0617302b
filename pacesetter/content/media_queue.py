"""
Media Queue - ordered, lazily extended sequence of playable items.

The session core only moves the queue pointer (``advance`` / ``go_back``),
reads ``current_item()`` and reacts to ``running_low``. Where items come
from is the provider's business: any callable ``provider(page, count)``
returning a list of ``MediaItem``. Provider failures are logged and treated
as an empty page, and an empty page marks the source exhausted.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..session.events import SessionEvent, SessionEventEmitter, SessionEventType
from .media_scan import MediaType, scan_media_directory

PREFETCH_THRESHOLD = 3
BATCH_SIZE = 20

MediaProvider = Callable[[int, int], Sequence["MediaItem"]]


@dataclass(frozen=True)
class MediaItem:
    id: str
    path: str
    media_type: MediaType = MediaType.IMAGE
    duration: Optional[float] = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_video(self) -> bool:
        return self.media_type is MediaType.VIDEO

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "media_type": self.media_type.value,
            "duration": self.duration,
            "tags": list(self.tags),
        }


class MediaQueue:
    """
    Queue pointer over provider-supplied items.

    Usage:
        queue = MediaQueue(DirectoryMediaProvider("~/media"))
        queue.request_more()
        item = queue.current_item()
        queue.advance()
    """

    def __init__(
        self,
        provider: Optional[MediaProvider] = None,
        *,
        batch_size: int = BATCH_SIZE,
        emitter: Optional[SessionEventEmitter] = None,
        wrap: bool = True,
    ):
        self.provider = provider
        self.batch_size = max(1, int(batch_size))
        self.emitter = emitter or SessionEventEmitter()
        self.wrap = wrap
        self.logger = logging.getLogger(__name__)

        self._items: list[MediaItem] = []
        self._ids: set[str] = set()
        self._index = 0
        self._page = 1
        self._has_more = provider is not None
        self._playing = False
        self._loading = False
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------ accessors
    @property
    def items(self) -> tuple[MediaItem, ...]:
        return tuple(self._items)

    @property
    def index(self) -> int:
        return self._index

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def remaining(self) -> int:
        """Items after the current one."""
        return max(0, len(self._items) - self._index - 1)

    @property
    def running_low(self) -> bool:
        return self.remaining <= PREFETCH_THRESHOLD

    def __len__(self) -> int:
        return len(self._items)

    def current_item(self) -> Optional[MediaItem]:
        if 0 <= self._index < len(self._items):
            return self._items[self._index]
        return None

    # ------------------------------------------------------------- fetching
    def extend(self, items: Sequence[MediaItem]) -> int:
        """Append items not already queued (by id); returns how many were added."""
        added = 0
        for item in items:
            if item.id in self._ids:
                continue
            self._ids.add(item.id)
            self._items.append(item)
            added += 1
        return added

    def request_more(self) -> int:
        """Fetch the next page from the provider; returns items added."""
        if self._loading or not self._has_more or self.provider is None:
            return 0
        self._loading = True
        try:
            try:
                batch = list(self.provider(self._page, self.batch_size))
                self.last_error = None
            except Exception as e:
                self.logger.warning("[media] Provider failed on page %d: %s", self._page, e)
                self.last_error = str(e)
                return 0
            if not batch:
                self._has_more = False
                self.logger.info("[media] Provider exhausted after %d page(s)", self._page - 1)
                return 0
            self._page += 1
            added = self.extend(batch)
            self.logger.debug("[media] Page %d: %d new item(s) (%d queued)", self._page - 1, added, len(self._items))
            return added
        finally:
            self._loading = False

    def _check_low(self) -> None:
        if self.running_low and self._has_more:
            self.emitter.emit(SessionEvent(SessionEventType.MEDIA_LOW, data={"remaining": self.remaining}))
            self.request_more()

    # ------------------------------------------------------------- pointer
    def advance(self) -> Optional[MediaItem]:
        """Move to the next item; wraps to the start once the source is dry."""
        if not self._items:
            self._check_low()
            return self.current_item()
        next_index = self._index + 1
        if next_index >= len(self._items):
            self._check_low()
            if next_index >= len(self._items):
                if not self.wrap:
                    return None
                next_index = 0
        self._index = next_index
        self._emit_advance()
        self._check_low()
        return self.current_item()

    def go_back(self) -> Optional[MediaItem]:
        if self._index > 0:
            self._index -= 1
            self._emit_advance()
        return self.current_item()

    def _emit_advance(self) -> None:
        item = self.current_item()
        self.emitter.emit(SessionEvent(
            SessionEventType.MEDIA_ADVANCE,
            data={"index": self._index, "id": item.id if item else None},
        ))

    def pause(self) -> None:
        self._playing = False

    def resume(self) -> None:
        self._playing = True

    def reset(self) -> None:
        self._items.clear()
        self._ids.clear()
        self._index = 0
        self._page = 1
        self._has_more = self.provider is not None
        self._playing = False
        self.last_error = None


class DirectoryMediaProvider:
    """Serves shuffled pages of the media found under a local folder.

    The folder is scanned once, on the first request.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        types: Sequence[MediaType] | None = None,
        rng: Optional[random.Random] = None,
    ):
        self.root = Path(root).expanduser()
        self.types = tuple(types) if types else None
        self.rng = rng or random.Random()
        self._items: Optional[list[MediaItem]] = None

    def _load(self) -> list[MediaItem]:
        if self._items is None:
            found = scan_media_directory(self.root, types=self.types)
            items = [
                MediaItem(id=path, path=path, media_type=kind, tags=(Path(path).parent.name,))
                for path, kind in found
            ]
            self.rng.shuffle(items)
            self._items = items
            logging.getLogger(__name__).info("[media] %d item(s) under %s", len(items), self.root)
        return self._items

    def __call__(self, page: int, count: int) -> list[MediaItem]:
        items = self._load()
        start = max(0, (int(page) - 1) * int(count))
        return items[start:start + int(count)]
