"""HTTP routes for playlist feeds and cached episode audio.

Routes:
    GET /health: Liveness check
    GET /{playlist_id}.xml: RSS feed for a playlist
    GET /{playlist_id}/{video_id}: Episode audio, with byte-range support

Handlers that wait on YouTube, yt-dlp or the disk are plain functions so
FastAPI runs them in its thread pool rather than on the event loop.
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from app.playlist_podcast import http_ranges
from app.playlist_podcast.audio_cache import AudioCache
from app.playlist_podcast.config import Settings
from app.playlist_podcast.errors import RetrievalError, UpstreamError
from app.playlist_podcast.feed import AUDIO_MIME_TYPE, render_feed
from app.playlist_podcast.filtering import filter_and_order
from app.playlist_podcast.playlist_cache import PlaylistCache
from app.playlist_podcast.playlist_fetcher import PlaylistFetcher

logger = logging.getLogger(__name__)

FEED_SUFFIX = ".xml"
RSS_MEDIA_TYPE = "application/rss+xml"


def _audio_response(request: Request, path) -> Response:
    validators = http_ranges.FileValidators.for_path(path)
    headers = {
        "Accept-Ranges": "bytes",
        "ETag": validators.etag,
        "Last-Modified": validators.last_modified,
    }

    if http_ranges.is_not_modified(
        request.headers.get("if-none-match"),
        request.headers.get("if-modified-since"),
        validators,
    ):
        return Response(status_code=304, headers=headers)

    byte_range: Optional[http_ranges.ByteRange] = None
    if http_ranges.if_range_matches(request.headers.get("if-range"), validators):
        try:
            byte_range = http_ranges.parse_range(
                request.headers.get("range"), validators.size
            )
        except http_ranges.RangeNotSatisfiable:
            headers["Content-Range"] = f"bytes */{validators.size}"
            return Response(status_code=416, headers=headers)

    if byte_range is None:
        headers["Content-Length"] = str(validators.size)
        return StreamingResponse(
            http_ranges.iter_file(path, 0, validators.size),
            media_type=AUDIO_MIME_TYPE,
            headers=headers,
        )

    headers["Content-Length"] = str(byte_range.length)
    headers["Content-Range"] = byte_range.content_range(validators.size)
    return StreamingResponse(
        http_ranges.iter_file(path, byte_range.start, byte_range.length),
        status_code=206,  # Partial Content
        media_type=AUDIO_MIME_TYPE,
        headers=headers,
    )


def create_app(
    settings: Settings,
    playlist_cache: Optional[PlaylistCache] = None,
    audio_cache: Optional[AudioCache] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service configuration
        playlist_cache: Defaults to a cache over the YouTube Data API
        audio_cache: Defaults to a yt-dlp backed cache in
            ``settings.audio_cache_dir``
    """
    if playlist_cache is None:
        playlist_cache = PlaylistCache(
            PlaylistFetcher(settings.api_key), settings.cache_ttl
        )
    if audio_cache is None:
        audio_cache = AudioCache(settings.audio_cache_dir)

    app = FastAPI()

    @app.get("/health")
    async def health():
        return Response(status_code=200)

    @app.get("/{feed_name}")
    def rss(feed_name: str):
        playlist_id = feed_name[: -len(FEED_SUFFIX)]
        if not feed_name.endswith(FEED_SUFFIX) or not playlist_id:
            raise HTTPException(status_code=404)
        logger.info(f"Received RSS feed request for playlist: {playlist_id}")

        try:
            items = playlist_cache.get(playlist_id)
        except UpstreamError as e:
            logger.error(f"Error fetching playlist items for {playlist_id}: {e.__cause__ or e}")
            return PlainTextResponse("Error fetching playlist items", status_code=500)

        episodes = filter_and_order(items, settings.filter_pattern)
        try:
            content = render_feed(episodes, playlist_id, settings.server_url)
        except ValueError as e:
            logger.error(f"Error generating RSS feed for {playlist_id}: {e}")
            return PlainTextResponse("Error generating RSS feed", status_code=500)

        logger.info(f"Served RSS feed for playlist: {playlist_id}")
        return Response(content=content, media_type=RSS_MEDIA_TYPE)

    @app.get("/{playlist_id}/{video_id}")
    def episode_audio(playlist_id: str, video_id: str, request: Request):
        if not audio_cache.is_valid_id(video_id):
            raise HTTPException(status_code=404)
        logger.info(
            f"Received audio request for playlist: {playlist_id}, video: {video_id}"
        )

        try:
            path = audio_cache.ensure(video_id)
        except RetrievalError:
            return PlainTextResponse("Error downloading audio", status_code=500)

        try:
            return _audio_response(request, path)
        except OSError as e:
            logger.error(f"Error opening audio file for video {video_id}: {e}")
            return PlainTextResponse("Error opening audio file", status_code=500)

    return app
