"""Byte-range and conditional request handling for cached files.

Only single ranges are supported. A malformed header or a request for
several ranges is answered with the whole file, which RFC 9110 permits.
"""

import os
from dataclasses import dataclass
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Iterator, Optional

CHUNK_SIZE = 64 * 1024


class RangeNotSatisfiable(Exception):
    """The requested range lies entirely outside the file."""

    pass


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


@dataclass(frozen=True)
class FileValidators:
    """Identity of one version of a file, for conditional requests."""

    size: int
    mtime: float
    etag: str
    last_modified: str

    @classmethod
    def for_path(cls, path: Path) -> "FileValidators":
        stat = os.stat(path)
        return cls(
            size=stat.st_size,
            mtime=stat.st_mtime,
            etag=f'"{stat.st_mtime_ns:x}-{stat.st_size:x}"',
            last_modified=formatdate(stat.st_mtime, usegmt=True),
        )


def parse_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """Parse a ``Range`` header against a file of ``size`` bytes.

    Returns:
        ByteRange: The single range to serve, clipped to the file
        None: If the whole file should be served instead

    Raises:
        RangeNotSatisfiable: If the range starts beyond the end of the file
    """
    if not header or not header.startswith("bytes="):
        return None
    range_data = header[len("bytes="):].strip()
    if "," in range_data or "-" not in range_data:
        return None

    first, last = (part.strip() for part in range_data.split("-", 1))
    if not first:
        # Suffix range: the final N bytes.
        if not last.isdigit():
            return None
        suffix = int(last)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiable(header)
        return ByteRange(max(0, size - suffix), size - 1)

    if not first.isdigit() or (last and not last.isdigit()):
        return None
    start = int(first)
    if last and int(last) < start:
        return None
    if start >= size:
        raise RangeNotSatisfiable(header)
    end = int(last) if last else size - 1
    return ByteRange(start, min(end, size - 1))


def if_range_matches(if_range: Optional[str], validators: FileValidators) -> bool:
    """Whether a ``Range`` should be honoured given the ``If-Range`` header."""
    if if_range is None:
        return True
    if_range = if_range.strip()
    if if_range.startswith("W/"):
        # Weak validators never match for ranges.
        return False
    if if_range.startswith('"'):
        return if_range == validators.etag
    return if_range == validators.last_modified


def is_not_modified(
    if_none_match: Optional[str],
    if_modified_since: Optional[str],
    validators: FileValidators,
) -> bool:
    """Evaluate ``If-None-Match`` and, failing that, ``If-Modified-Since``."""
    if if_none_match is not None:
        tags = [tag.strip() for tag in if_none_match.split(",")]
        return "*" in tags or any(
            tag.removeprefix("W/") == validators.etag for tag in tags
        )
    if if_modified_since is not None:
        try:
            since = parsedate_to_datetime(if_modified_since)
        except (TypeError, ValueError):
            return False
        return int(validators.mtime) <= since.timestamp()
    return False


def iter_file(path: Path, start: int, length: int) -> Iterator[bytes]:
    """Yield ``length`` bytes of ``path`` beginning at ``start``."""
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
