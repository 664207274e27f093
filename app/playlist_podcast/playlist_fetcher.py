"""Fetching playlist metadata from the YouTube Data API.

Classes:
    MemberItem: One video in a playlist
    PlaylistFetcher: Follows ``playlistItems.list`` pagination to completion
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError

from app.playlist_podcast.errors import UpstreamError

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
REQUEST_TIMEOUT_SECONDS = 30
WATCH_URL = "https://www.youtube.com/watch?v={}"


@dataclass(frozen=True)
class MemberItem:
    """A single playlist entry, as much of it as the feed needs."""

    video_id: str
    title: str
    description: str
    link: str
    published_at: Optional[datetime] = None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        # fromisoformat only learned the "Z" suffix in 3.11.
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable publishedAt timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        # The API reports UTC.
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def member_item_from_resource(resource: Dict[str, Any]) -> Optional[MemberItem]:
    """Convert a ``playlistItem`` resource, or None if it has no video id."""
    snippet = resource.get("snippet") or {}
    video_id = (snippet.get("resourceId") or {}).get("videoId")
    if not video_id:
        return None
    return MemberItem(
        video_id=video_id,
        title=snippet.get("title", ""),
        description=snippet.get("description", ""),
        link=WATCH_URL.format(video_id),
        published_at=_parse_timestamp(snippet.get("publishedAt")),
    )


def build_youtube_service(api_key: str):
    """Create a YouTube Data API v3 client with a bounded socket timeout."""
    return build(
        "youtube",
        "v3",
        developerKey=api_key,
        http=httplib2.Http(timeout=REQUEST_TIMEOUT_SECONDS),
        cache_discovery=False,
    )


class PlaylistFetcher:
    """Fetches every item of a playlist, page by page.

    A fresh API client is built for each fetch, as the underlying httplib2
    transport is not safe to share between threads.

    Args:
        api_key (str): YouTube Data API key
        service_factory (callable, optional): Builds the API client from the
            key. Defaults to ``build_youtube_service``.
    """

    def __init__(
        self,
        api_key: str,
        service_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.api_key = api_key
        self.service_factory = service_factory or build_youtube_service

    def fetch_all(self, playlist_id: str) -> List[MemberItem]:
        """Return all items of the playlist in upstream order.

        Pages are accumulated until the API stops returning a
        ``nextPageToken``. A failure on any page discards what was collected
        so far.

        Args:
            playlist_id (str): The playlist to list

        Returns:
            list[MemberItem]: Items in the order the API returned them

        Raises:
            UpstreamError: If the client cannot be built or any page fails
        """
        items: List[MemberItem] = []
        page_token: Optional[str] = None
        pages = 0
        try:
            service = self.service_factory(self.api_key)
            while True:
                response = (
                    service.playlistItems()
                    .list(
                        part="snippet",
                        playlistId=playlist_id,
                        maxResults=PAGE_SIZE,
                        pageToken=page_token,
                    )
                    .execute()
                )
                pages += 1
                for resource in response.get("items", []):
                    item = member_item_from_resource(resource)
                    if item is None:
                        logger.warning(
                            f"Skipping playlist entry without a video id in {playlist_id}"
                        )
                        continue
                    items.append(item)
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except (GoogleApiError, httplib2.HttpLib2Error, OSError) as e:
            logger.error(
                f"Error fetching playlist items for {playlist_id} on page {pages + 1}: {e}"
            )
            raise UpstreamError(
                f"Failed to fetch playlist items for {playlist_id}"
            ) from e

        logger.info(
            f"Fetched {len(items)} playlist items in {pages} pages for playlist {playlist_id}"
        )
        return items
