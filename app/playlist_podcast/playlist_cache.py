"""Time-bounded in-memory cache of playlist metadata.

Classes:
    ReadWriteLock: Many concurrent readers or a single writer
    PlaylistCacheEntry: The items of one playlist and when they were fetched
    PlaylistCache: Serves fresh entries and refreshes stale ones
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

from app.playlist_podcast.playlist_fetcher import MemberItem, PlaylistFetcher

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """A reader/writer lock that favours readers.

    Writers only ever hold it for a dictionary assignment, so writer
    starvation is not a practical concern.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._readers > 0:
                self._cond.wait()
            yield


@dataclass(frozen=True)
class PlaylistCacheEntry:
    items: Tuple[MemberItem, ...]
    fetched_at: float


class PlaylistCache:
    """Maps playlist ids to their most recently fetched items.

    An entry is fresh while ``now - fetched_at < ttl``. Stale or missing
    entries are re-fetched in full and replaced as a unit. The upstream
    fetch runs outside the map lock; a per-playlist refresh lock makes
    concurrent callers for the same stale playlist wait for one fetch
    instead of each issuing their own.

    Args:
        fetcher (PlaylistFetcher): Source of playlist items
        ttl_seconds (float): How long a fetched entry stays fresh
        clock (callable, optional): Returns the current time in seconds.
            Defaults to ``time.monotonic``.
    """

    def __init__(
        self,
        fetcher: PlaylistFetcher,
        ttl_seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.clock = clock or time.monotonic
        self._entries: Dict[str, PlaylistCacheEntry] = {}
        self._lock = ReadWriteLock()
        self._refresh_locks: Dict[str, threading.Lock] = {}
        self._refresh_locks_guard = threading.Lock()

    def _fresh_entry(self, playlist_id: str) -> Optional[PlaylistCacheEntry]:
        with self._lock.read():
            entry = self._entries.get(playlist_id)
        if entry is not None and self.clock() - entry.fetched_at < self.ttl_seconds:
            return entry
        return None

    def _refresh_lock(self, playlist_id: str) -> threading.Lock:
        with self._refresh_locks_guard:
            return self._refresh_locks.setdefault(playlist_id, threading.Lock())

    def get(self, playlist_id: str) -> Tuple[MemberItem, ...]:
        """Return the playlist's items, fetching them if missing or stale.

        Raises:
            UpstreamError: If a refresh was needed and failed. Any previously
                cached entry is left untouched.
        """
        entry = self._fresh_entry(playlist_id)
        if entry is not None:
            logger.info(f"Using cached playlist items for {playlist_id}")
            return entry.items

        with self._refresh_lock(playlist_id):
            # Another request may have refreshed while we waited.
            entry = self._fresh_entry(playlist_id)
            if entry is not None:
                logger.info(f"Using playlist items refreshed concurrently for {playlist_id}")
                return entry.items

            logger.info(f"Fetching playlist items from YouTube API for {playlist_id}")
            items = tuple(self.fetcher.fetch_all(playlist_id))
            entry = PlaylistCacheEntry(items=items, fetched_at=self.clock())
            with self._lock.write():
                self._entries[playlist_id] = entry
            logger.info(f"Updated cache for {playlist_id} with {len(items)} items")
            return items
