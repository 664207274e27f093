"""Service configuration read from environment variables.

Recognized keys:
    API_KEY (or YOUTUBE_API_KEY): YouTube Data API key, required
    SERVER_URL: public base URL used in feed links
    PORT: listening port, defaults to 8080
    CACHE_TTL: playlist metadata lifetime in seconds, defaults to 3600
    FILTER_PATTERN: regular expression that episode titles must match
    CONVERT_TO_MP3: "true" to enable, read but currently unused
    AUDIO_CACHE_DIR: where extracted audio is stored
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from app.playlist_podcast.errors import ConfigurationError

logger = logging.getLogger(__name__)

API_KEY_ENVS = ("API_KEY", "YOUTUBE_API_KEY")
DEFAULT_PORT = 8080
DEFAULT_CACHE_TTL = 3600
DEFAULT_AUDIO_CACHE_DIR = "./audio_cache"


@dataclass(frozen=True)
class Settings:
    api_key: str
    server_url: str
    port: int = DEFAULT_PORT
    cache_ttl: int = DEFAULT_CACHE_TTL
    filter_pattern: Optional[re.Pattern] = None
    convert_to_mp3: bool = False
    audio_cache_dir: Path = Path(DEFAULT_AUDIO_CACHE_DIR)


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    value = environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {key}={value!r}, using {default}")
        return default


def compile_filter_pattern(pattern: Optional[str]) -> Optional[re.Pattern]:
    """Compile the title filter, treating an empty pattern as no filter.

    Raises:
        ConfigurationError: If the pattern is not a valid regular expression
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid FILTER_PATTERN {pattern!r}: {e}") from e


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build the service settings from an environment mapping.

    Args:
        environ: Mapping to read from, defaults to ``os.environ``

    Returns:
        Settings: The validated configuration

    Raises:
        ConfigurationError: If the API key is missing or the filter pattern
            does not compile
    """
    if environ is None:
        environ = os.environ

    api_key = next((environ[k] for k in API_KEY_ENVS if environ.get(k)), "")
    if not api_key:
        raise ConfigurationError("YouTube API key not set")

    port = _get_int(environ, "PORT", DEFAULT_PORT)
    server_url = environ.get("SERVER_URL") or f"http://localhost:{port}"

    return Settings(
        api_key=api_key,
        server_url=server_url.rstrip("/"),
        port=port,
        cache_ttl=_get_int(environ, "CACHE_TTL", DEFAULT_CACHE_TTL),
        filter_pattern=compile_filter_pattern(environ.get("FILTER_PATTERN")),
        convert_to_mp3=environ.get("CONVERT_TO_MP3") == "true",
        audio_cache_dir=Path(
            environ.get("AUDIO_CACHE_DIR") or DEFAULT_AUDIO_CACHE_DIR
        ),
    )
