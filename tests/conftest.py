"""Shared pytest fixtures for the playlist podcast test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from app.playlist_podcast.config import Settings
from app.playlist_podcast.errors import RetrievalError
from app.playlist_podcast.playlist_fetcher import MemberItem, WATCH_URL


def make_item(video_id: str, title: str | None = None, **kwargs: Any) -> MemberItem:
    return MemberItem(
        video_id=video_id,
        title=title if title is not None else f"Episode {video_id}",
        description=kwargs.pop("description", f"About {video_id}"),
        link=WATCH_URL.format(video_id),
        **kwargs,
    )


def make_resource(video_id: str | None, title: str = "", **snippet: Any) -> dict:
    """A ``playlistItem`` resource as returned by the YouTube Data API."""
    body = {"title": title, "description": f"Description of {title}", **snippet}
    if video_id is not None:
        body["resourceId"] = {"kind": "youtube#video", "videoId": video_id}
    return {"kind": "youtube#playlistItem", "snippet": body}


class FakeYouTubeService:
    """Stands in for ``googleapiclient``'s YouTube resource.

    Serves ``pages`` in order and optionally raises on one page index.
    """

    def __init__(self, pages: list[dict], fail_on_page: int | None = None, error=None):
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.error = error or TimeoutError("timed out")
        self.calls: list[dict] = []

    def playlistItems(self) -> "FakeYouTubeService":
        return self

    def list(self, **kwargs: Any) -> "FakeYouTubeService":
        self.calls.append(kwargs)
        return self

    def execute(self) -> dict:
        index = len(self.calls) - 1
        if index == self.fail_on_page:
            raise self.error
        return self.pages[index]


def paged_resources(counts: list[int]) -> list[dict]:
    """Split sequentially numbered resources into pages with tokens."""
    pages = []
    n = 0
    for page_index, count in enumerate(counts):
        items = []
        for _ in range(count):
            items.append(make_resource(f"vid{n:04d}", title=f"Video {n}"))
            n += 1
        page: dict = {"items": items}
        if page_index < len(counts) - 1:
            page["nextPageToken"] = f"token-{page_index + 1}"
        pages.append(page)
    return pages


class FakePlaylistFetcher:
    """Returns canned items per playlist and counts the fetches."""

    def __init__(self, items: dict[str, list[MemberItem]] | None = None, error=None):
        self.items = items or {}
        self.error = error
        self.calls: list[str] = []

    def fetch_all(self, playlist_id: str) -> list[MemberItem]:
        self.calls.append(playlist_id)
        if self.error is not None:
            raise self.error
        return list(self.items.get(playlist_id, []))


class FakeExtractor:
    """Writes fixed bytes instead of running yt-dlp, or fails on request."""

    def __init__(self, payload: bytes = b"ID3fake-mp3-bytes", fail_ids=()):
        self.payload = payload
        self.fail_ids = set(fail_ids)
        self.calls: list[str] = []

    def extract(self, video_id: str, work_dir: Path) -> Path:
        self.calls.append(video_id)
        output = work_dir / "audio.mp3"
        if video_id in self.fail_ids:
            # Leave a partial file behind, as an interrupted download would.
            output.write_bytes(self.payload[:3])
            raise RetrievalError(f"extraction failed for {video_id}")
        output.write_bytes(self.payload)
        return output


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "audio_cache"


@pytest.fixture()
def settings(cache_dir: Path) -> Settings:
    return Settings(
        api_key="test-key",
        server_url="http://h:8080",
        port=8080,
        cache_ttl=3600,
        audio_cache_dir=cache_dir,
    )
