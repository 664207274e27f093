"""RSS feed rendering for playlist podcasts."""

import logging
import re
from datetime import timezone
from typing import Iterable

from feedgen.entry import FeedEntry  # type: ignore
from feedgen.feed import FeedGenerator  # type: ignore

from app.playlist_podcast.playlist_fetcher import MemberItem

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/mpeg"
CHANNEL_TITLE = "YouTube Playlist {}"
CHANNEL_DESCRIPTION = "Generated podcast feed from YouTube playlist"

# Code points that may not appear anywhere in an XML 1.0 document.
_XML_ILLEGAL_CHARS = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)


def _xml_text(text: str) -> str:
    return _XML_ILLEGAL_CHARS.sub("", text or "")


def feed_url(base_url: str, playlist_id: str) -> str:
    return f"{base_url}/{playlist_id}.xml"


def audio_url(base_url: str, playlist_id: str, video_id: str) -> str:
    return f"{base_url}/{playlist_id}/{video_id}"


def _entry(item: MemberItem, playlist_id: str, base_url: str) -> FeedEntry:
    fe = FeedEntry()
    fe.guid(item.video_id)
    # RSS items need a title or a description; untitled videos still get one.
    fe.title(_xml_text(item.title) or item.video_id)
    fe.description(_xml_text(item.description))
    fe.link(href=item.link)
    # Length is unknown until the audio has been extracted.
    fe.enclosure(audio_url(base_url, playlist_id, item.video_id), "0", AUDIO_MIME_TYPE)
    if item.published_at is not None:
        published = item.published_at
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)
        fe.published(published)
    return fe


def render_feed(items: Iterable[MemberItem], playlist_id: str, base_url: str) -> bytes:
    """Render the playlist as an RSS 2.0 document.

    Entries keep the order of ``items``. Text is escaped by the XML
    serializer; characters XML cannot represent at all are dropped.

    Args:
        items: Episodes to include, already filtered and ordered
        playlist_id: Identifies the feed and prefixes every audio URL
        base_url: Public URL of this service, without a trailing slash

    Returns:
        bytes: The UTF-8 encoded feed, including the XML declaration
    """
    fg = FeedGenerator()
    fg.title(CHANNEL_TITLE.format(_xml_text(playlist_id)))
    fg.description(CHANNEL_DESCRIPTION)
    fg.link(href=feed_url(base_url, playlist_id), rel="self")

    entries = [_entry(item, playlist_id, base_url) for item in items]
    # entry() appends in list order; add_entry() prepends on newer feedgen.
    fg.entry(entries)

    logger.info(f"Generated RSS feed with {len(entries)} items for {playlist_id}")
    return fg.rss_str(pretty=True)
