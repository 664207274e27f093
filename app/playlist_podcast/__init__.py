"""Playlist Podcast Core Module

This package contains the caching and feed logic behind the service. It
fetches playlist metadata with a time-bounded cache, filters and orders
episodes, renders RSS, and materializes episode audio on disk on demand.

Modules:
    config: Environment-driven settings
    errors: Exception hierarchy
    playlist_fetcher: Paginated YouTube Data API client
    playlist_cache: TTL cache of playlist items
    filtering: Title filter and newest-first ordering
    feed: RSS rendering
    audio_cache: yt-dlp backed on-disk audio cache
    http_ranges: Range and conditional request helpers
    server: FastAPI routes
"""
