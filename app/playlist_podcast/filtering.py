"""Title filtering and episode ordering for generated feeds."""

import logging
import re
from typing import List, Optional, Sequence

from app.playlist_podcast.playlist_fetcher import MemberItem

logger = logging.getLogger(__name__)


def filter_and_order(
    items: Sequence[MemberItem], pattern: Optional[re.Pattern] = None
) -> List[MemberItem]:
    """Keep items whose title matches ``pattern`` and put the newest first.

    Playlists list their oldest entries first, so the surviving items are
    always reversed, whether or not a pattern is set.

    Args:
        items: Playlist items in upstream order
        pattern: Compiled expression searched for in each title, or None to
            keep everything

    Returns:
        list[MemberItem]: A new list, newest item first
    """
    if pattern is None:
        kept = list(items)
    else:
        kept = [item for item in items if pattern.search(item.title)]
        logger.info(
            f"Filtered {len(kept)} videos out of {len(items)} using pattern: {pattern.pattern}"
        )
    kept.reverse()
    return kept
