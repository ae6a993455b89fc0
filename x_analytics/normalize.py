from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from .records import RecordType

# Bump when an alias is added or reordered so persisted imports can be traced
# back to the table that produced them.
ALIAS_TABLE_VERSION = 3

Aliases = Sequence[str]

ACCOUNT_OVERVIEW_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "day"),
    "impressions": ("impressions", "views"),
    "likes": ("likes", "favorites"),
    "reposts": ("reposts", "retweets"),
    "shares": ("shares",),
    "replies": ("replies",),
    "bookmarks": ("bookmarks",),
    "new_follows": ("new_follows", "follows", "new_followers"),
    "unfollows": ("unfollows", "lost_followers"),
    "profile_visits": ("profile_visits", "user_profile_clicks", "profile_clicks"),
    "video_views": ("video_views",),
    "media_views": ("media_views",),
}

CONTENT_ANALYTICS_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("post_id", "tweet_id", "id"),
    "text": ("post_text", "tweet_text", "text", "tweet"),
    "time": ("date", "time", "created_at", "post_date"),
    "link": ("post_link", "tweet_permalink", "permalink"),
    "impressions": ("impressions", "views"),
    "likes": ("likes", "favorites"),
    "reposts": ("reposts", "retweets"),
    "shares": ("shares",),
    "replies": ("replies",),
    "bookmarks": ("bookmarks",),
    "new_follows": ("new_follows", "follows"),
    "profile_visits": ("profile_visits", "user_profile_clicks", "profile_clicks"),
    "url_clicks": ("url_clicks", "link_clicks"),
    "hashtag_clicks": ("hashtag_clicks",),
    "permalink_clicks": ("permalink_clicks",),
    "detail_expands": ("detail_expands",),
}

VIDEO_ANALYTICS_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "day"),
    "views": ("views", "video_views"),
    "watch_time_ms": ("watch_time_ms", "watch_time", "total_watch_time_ms"),
    "completion_rate": ("completion_rate", "completion_rate_%", "completion"),
    "average_watch_time_ms": ("average_watch_time_ms", "average_watch_time", "avg_watch_time_ms"),
    "estimated_revenue": ("estimated_revenue", "revenue", "estimated_revenue_usd"),
}

ALIAS_TABLES: dict[RecordType, dict[str, tuple[str, ...]]] = {
    RecordType.ACCOUNT_OVERVIEW: ACCOUNT_OVERVIEW_ALIASES,
    RecordType.CONTENT_ANALYTICS: CONTENT_ANALYTICS_ALIASES,
    RecordType.VIDEO_ANALYTICS: VIDEO_ANALYTICS_ALIASES,
}

_NUMBER_NOISE_RE = re.compile(r"[,\s$%]")


def field_text(record: Mapping[str, Any], aliases: Aliases) -> str:
    """
    Return the first non-empty value among `aliases`, in priority order.
    """
    for alias in aliases:
        value = record.get(alias)
        if value is None:
            continue
        s = str(value).strip()
        if s:
            return s
    return ""


def _finite(f: float) -> float:
    # NaN and infinities are not JSON-safe.
    return f if math.isfinite(f) else 0.0


def to_float(value: Any) -> float:
    if isinstance(value, (bool, int, float)):
        return _finite(float(value))

    s = _NUMBER_NOISE_RE.sub("", str(value or ""))
    if not s:
        return 0.0
    try:
        return _finite(float(s))
    except ValueError:
        return 0.0


def to_int(value: Any) -> int:
    return int(round(to_float(value)))


def field_int(record: Mapping[str, Any], aliases: Aliases) -> int:
    return to_int(field_text(record, aliases))


def field_float(record: Mapping[str, Any], aliases: Aliases) -> float:
    return to_float(field_text(record, aliases))


def count(record: Mapping[str, Any], aliases: Aliases) -> int:
    """A non-negative count; unparsable or negative input becomes 0."""
    return max(0, field_int(record, aliases))


_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%a, %b %d, %Y",
    "%a, %B %d, %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d, %Y at %I:%M %p",
    "%b %d, %Y at %H:%M",
    "%a %b %d %H:%M:%S %z %Y",
)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Any) -> datetime | None:
    """
    Best-effort parse of the timestamp formats seen in platform exports.

    Aware values are converted to naive UTC so parsed timestamps stay comparable.
    Returns None instead of raising when nothing matches.
    """
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    s = str(value or "").strip()
    if not s:
        return None

    iso = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        return _naive_utc(datetime.fromisoformat(iso))
    except ValueError:
        pass

    for fmt in _DATETIME_FORMATS:
        try:
            return _naive_utc(datetime.strptime(s, fmt))
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> date | None:
    dt = parse_datetime(value)
    return dt.date() if dt is not None else None
