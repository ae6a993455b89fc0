from __future__ import annotations

from typing import Iterable

from .records import RecordType

_VIDEO_MARKERS = ("watch_time", "completion_rate", "average_watch_time", "video_views")
_CONTENT_MARKERS = ("post_id", "post_text", "post_link", "tweet")
_ACCOUNT_METRICS = frozenset(
    {"impressions", "likes", "engagements", "new_follows", "profile_visits"}
)


def classify_columns(columns: Iterable[str]) -> RecordType:
    """
    Decide which export schema a set of normalized column names belongs to.

    Rules are checked in order and the first match wins.
    """
    names = [c for c in columns if c]
    if not names:
        return RecordType.UNKNOWN

    if any(marker in name for name in names for marker in _VIDEO_MARKERS):
        return RecordType.VIDEO_ANALYTICS
    if "views" in names and any("watch" in name for name in names if name != "views"):
        return RecordType.VIDEO_ANALYTICS

    if any(marker in name for name in names for marker in _CONTENT_MARKERS):
        return RecordType.CONTENT_ANALYTICS

    if "date" in names and _ACCOUNT_METRICS.intersection(names):
        return RecordType.ACCOUNT_OVERVIEW

    return RecordType.UNKNOWN
