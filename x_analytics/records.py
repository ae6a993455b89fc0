from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Literal


class RecordType(str, Enum):
    ACCOUNT_OVERVIEW = "account_overview"
    CONTENT_ANALYTICS = "content_analytics"
    VIDEO_ANALYTICS = "video_analytics"
    UNKNOWN = "unknown"


HookType = Literal[
    "Contrarian",
    "Data/Numbers",
    "FOMO",
    "Question",
    "Story",
    "Bold Statement",
]

ContentType = Literal["Long-form", "Single Post", "Thread", "Unknown"]


@dataclass(frozen=True)
class DailyMetric:
    """One calendar day of account-level (or post-aggregated) metrics."""

    date: date
    impressions: int = 0
    likes: int = 0
    reposts: int = 0
    shares: int = 0
    replies: int = 0
    bookmarks: int = 0
    new_follows: int = 0
    unfollows: int = 0
    profile_visits: int = 0
    video_views: int = 0
    media_views: int = 0

    # Running follower count, accumulated from new_follows - unfollows.
    followers: int = 0

    @property
    def engagement(self) -> int:
        return self.likes + self.reposts + self.replies


@dataclass(frozen=True)
class PostItem:
    id: str
    text: str = ""
    timestamp: datetime | None = None
    link: str | None = None

    impressions: int = 0
    likes: int = 0
    reposts: int = 0
    shares: int = 0
    replies: int = 0
    bookmarks: int = 0
    new_follows: int = 0
    profile_visits: int = 0
    url_clicks: int = 0
    hashtag_clicks: int = 0
    permalink_clicks: int = 0
    detail_expands: int = 0

    hook_type: HookType = "Bold Statement"
    content_type: ContentType = "Unknown"

    @property
    def engagement(self) -> int:
        return self.likes + self.reposts + self.replies


@dataclass(frozen=True)
class VideoDayMetric:
    date: date
    views: int = 0
    watch_time_ms: int = 0
    completion_rate: float = 0.0
    average_watch_time_ms: int = 0
    estimated_revenue: float = 0.0


@dataclass(frozen=True)
class MetricTotals:
    impressions: int = 0
    likes: int = 0
    reposts: int = 0
    shares: int = 0
    replies: int = 0
    bookmarks: int = 0
    new_follows: int = 0
    unfollows: int = 0
    profile_visits: int = 0
    video_views: int = 0
    media_views: int = 0

    @property
    def engagement(self) -> int:
        return self.likes + self.reposts + self.replies

    @property
    def net_followers(self) -> int:
        return self.new_follows - self.unfollows


TOTAL_FIELDS: tuple[str, ...] = (
    "impressions",
    "likes",
    "reposts",
    "shares",
    "replies",
    "bookmarks",
    "new_follows",
    "unfollows",
    "profile_visits",
    "video_views",
    "media_views",
)


def sum_totals(items: Iterable[object]) -> MetricTotals:
    """
    Sum the shared count fields of DailyMetric or PostItem values.

    Fields missing on an item (e.g. unfollows on a post) count as zero.
    """
    sums = dict.fromkeys(TOTAL_FIELDS, 0)
    for item in items:
        for name in TOTAL_FIELDS:
            sums[name] += int(getattr(item, name, 0) or 0)
    return MetricTotals(**sums)


@dataclass(frozen=True)
class VideoSummary:
    days: int = 0
    total_views: int = 0
    watch_time_minutes: int = 0
    avg_completion_rate: float = 0.0
    estimated_revenue: float = 0.0


@dataclass(frozen=True)
class AccountOverviewResult:
    days: tuple[DailyMetric, ...]
    totals: MetricTotals


@dataclass(frozen=True)
class ContentAnalyticsResult:
    posts: tuple[PostItem, ...]
    daily: tuple[DailyMetric, ...]
    top_posts: tuple[PostItem, ...]
    totals: MetricTotals


@dataclass(frozen=True)
class VideoAnalyticsResult:
    days: tuple[VideoDayMetric, ...]
    summary: VideoSummary


TransformResult = AccountOverviewResult | ContentAnalyticsResult | VideoAnalyticsResult


@dataclass(frozen=True)
class FileTransform:
    """The typed output of one successfully transformed file."""

    name: str
    record_type: RecordType
    result: TransformResult


@dataclass(frozen=True)
class HookPerformance:
    label: str
    avg_impressions: int
    avg_engagement: float
    posts: int


@dataclass(frozen=True)
class DatasetSummary:
    total_impressions: int = 0
    total_likes: int = 0
    total_reposts: int = 0
    total_replies: int = 0
    total_bookmarks: int = 0
    total_shares: int = 0
    current_followers: int = 0
    engagement_rate: float = 0.0
    total_posts: int = 0
    video_views: int = 0
    watch_time_minutes: int = 0
    avg_completion_rate: float = 0.0
    estimated_revenue: float = 0.0


@dataclass(frozen=True)
class MergedDataset:
    """
    The unified result of one or more imports.

    Always rebuilt from source records; never mutated in place.
    """

    account: AccountOverviewResult | None = None
    content: ContentAnalyticsResult | None = None
    video: VideoAnalyticsResult | None = None

    daily_series: tuple[DailyMetric, ...] = ()
    top_posts: tuple[PostItem, ...] = ()
    hook_performance: tuple[HookPerformance, ...] = ()
    summary: DatasetSummary = DatasetSummary()

    sources: tuple[str, ...] = ()
    profile_followers: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.account is None and self.content is None and self.video is None
