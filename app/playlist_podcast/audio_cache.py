"""Disk-backed cache of audio extracted from YouTube videos.

The presence of ``{cache_dir}/{video_id}.mp3`` is the only record that an
item is cached. Extraction happens in a private working directory inside
the cache and the finished file is renamed into place, so a failed or
interrupted extraction never leaves a file at the canonical path.

Classes:
    YtDlpExtractor: Downloads a video's audio track and converts it to mp3
    AudioCache: Maps video ids to cached audio files, extracting on a miss
"""

import logging
import os
import re
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Dict

import ffmpeg  # type: ignore
import yt_dlp
from yt_dlp.utils import YoutubeDLError

from app.playlist_podcast.errors import RetrievalError
from app.playlist_podcast.playlist_fetcher import WATCH_URL

logger = logging.getLogger(__name__)

AUDIO_EXTENSION = ".mp3"
WORK_DIR_PREFIX = ".extract-"
VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SOCKET_TIMEOUT_SECONDS = 30


def _verify_audio(path: Path) -> None:
    """Check with ffprobe that the first stream of ``path`` is audio."""
    probe = ffmpeg.probe(str(path))
    streams = probe.get("streams") or [{}]
    codec_type = streams[0].get("codec_type")
    if codec_type != "audio":
        raise RetrievalError(f"First stream of {path.name} is {codec_type}, not audio")


class YtDlpExtractor:
    """Extracts the best available audio of a video as an mp3 file.

    Args:
        socket_timeout (int, optional): Seconds before a stalled connection
            is abandoned. Defaults to 30.
    """

    def __init__(self, socket_timeout: int = SOCKET_TIMEOUT_SECONDS) -> None:
        self.socket_timeout = socket_timeout

    def extract(self, video_id: str, work_dir: Path) -> Path:
        """Download and convert the audio of ``video_id`` into ``work_dir``.

        Returns:
            Path: The extracted mp3 file inside ``work_dir``

        Raises:
            RetrievalError: If yt-dlp or ffprobe fails, or no audio results
        """
        url = WATCH_URL.format(video_id)
        ydl_opts = {
            "format": "bestaudio/best",
            "outtmpl": str(work_dir / "audio.%(ext)s"),
            "postprocessors": [
                {"key": "FFmpegExtractAudio", "preferredcodec": "mp3"}
            ],
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
            "socket_timeout": self.socket_timeout,
        }

        logger.info(f"Running yt-dlp for video {video_id}")
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                retcode = ydl.download([url])
            if retcode:
                raise RetrievalError(f"yt-dlp exited with {retcode} for {video_id}")

            output = work_dir / f"audio{AUDIO_EXTENSION}"
            if not output.is_file():
                raise RetrievalError(f"yt-dlp produced no mp3 for {video_id}")
            _verify_audio(output)
        except (YoutubeDLError, ffmpeg.Error, OSError) as e:
            raise RetrievalError(f"Audio extraction failed for {video_id}: {e}") from e

        logger.info(f"Successfully extracted audio for video {video_id}")
        return output


class AudioCache:
    """Serves cached audio files, extracting them on first request.

    Concurrent first requests for the same video share one extraction: the
    second caller waits on a per-video lock and then finds the file.

    Args:
        cache_dir (Path): Directory holding the cached files, created if
            missing
        extractor (optional): Object with an ``extract(video_id, work_dir)``
            method returning the path of the produced file. Defaults to a
            ``YtDlpExtractor``.
    """

    def __init__(self, cache_dir: Path, extractor=None) -> None:
        self.cache_dir = Path(cache_dir)
        if not self.cache_dir.is_dir():
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created audio cache directory: {self.cache_dir}")
        self.extractor = extractor or YtDlpExtractor()
        self._inflight: Dict[str, threading.Lock] = {}
        self._inflight_guard = threading.Lock()
        self._remove_abandoned_work_dirs()

    def _remove_abandoned_work_dirs(self) -> None:
        for work_dir in self.cache_dir.glob(f"{WORK_DIR_PREFIX}*"):
            logger.warning(f"Removing abandoned extraction directory {work_dir}")
            shutil.rmtree(work_dir, ignore_errors=True)

    @staticmethod
    def is_valid_id(video_id: str) -> bool:
        return bool(VIDEO_ID_PATTERN.match(video_id))

    def path_for(self, video_id: str) -> Path:
        """The canonical cache path of ``video_id``.

        Raises:
            ValueError: If the id could escape the cache directory
        """
        if not self.is_valid_id(video_id):
            raise ValueError(f"Invalid video id: {video_id!r}")
        return self.cache_dir / f"{video_id}{AUDIO_EXTENSION}"

    def _lock_for(self, video_id: str) -> threading.Lock:
        with self._inflight_guard:
            return self._inflight.setdefault(video_id, threading.Lock())

    def ensure(self, video_id: str) -> Path:
        """Return the path of the cached audio, extracting it if needed.

        Raises:
            ValueError: If ``video_id`` is not a valid id
            RetrievalError: If extraction fails. Nothing is left at the
                canonical path and a later call will try again.
        """
        path = self.path_for(video_id)
        if path.is_file():
            logger.info(f"Serving cached audio file for video {video_id}")
            return path

        with self._lock_for(video_id):
            if path.is_file():
                logger.info(f"Audio for video {video_id} was extracted concurrently")
                return path
            logger.info(f"Audio file not found in cache, extracting video {video_id}")
            self._extract_into_place(video_id, path)
        return path

    def _extract_into_place(self, video_id: str, path: Path) -> None:
        try:
            with tempfile.TemporaryDirectory(
                prefix=WORK_DIR_PREFIX, dir=self.cache_dir
            ) as work_dir:
                produced = self.extractor.extract(video_id, Path(work_dir))
                os.replace(produced, path)
        except RetrievalError as e:
            logger.error(f"Error extracting audio for video {video_id}: {e}")
            raise
        except OSError as e:
            logger.error(f"Error storing audio for video {video_id}: {e}")
            raise RetrievalError(f"Could not store audio for {video_id}") from e
