"""Exceptions raised by the playlist podcast service."""


class PlaylistPodcastError(Exception):
    """Base exception for all playlist podcast errors."""

    pass


class ConfigurationError(PlaylistPodcastError):
    """Invalid or missing configuration, fatal at startup."""

    pass


class UpstreamError(PlaylistPodcastError):
    """The playlist metadata could not be fetched from the upstream API."""

    pass


class RetrievalError(PlaylistPodcastError):
    """Audio for an item could not be extracted into the cache."""

    pass
