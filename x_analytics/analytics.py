from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Sequence

from .errors import InvalidTimeWindowError
from .merge import assemble_dataset
from .metrics import engagement_rate, percent_change, performance_by
from .records import (
    AccountOverviewResult,
    ContentAnalyticsResult,
    DailyMetric,
    HookPerformance,
    MergedDataset,
    PostItem,
    VideoAnalyticsResult,
    sum_totals,
)
from .transform import DEFAULT_TOP_POSTS_LIMIT, rank_top_posts, summarize_video


class TimeWindow(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL_TIME = "all"

    @property
    def days(self) -> int | None:
        return _WINDOW_DAYS[self]


_WINDOW_DAYS: dict[TimeWindow, int | None] = {
    TimeWindow.LAST_7_DAYS: 7,
    TimeWindow.LAST_30_DAYS: 30,
    TimeWindow.LAST_90_DAYS: 90,
    TimeWindow.ALL_TIME: None,
}

_WINDOW_ALIASES: dict[str, TimeWindow] = {
    "7d": TimeWindow.LAST_7_DAYS,
    "last_7_days": TimeWindow.LAST_7_DAYS,
    "30d": TimeWindow.LAST_30_DAYS,
    "last_30_days": TimeWindow.LAST_30_DAYS,
    "90d": TimeWindow.LAST_90_DAYS,
    "last_90_days": TimeWindow.LAST_90_DAYS,
    "all": TimeWindow.ALL_TIME,
    "all_time": TimeWindow.ALL_TIME,
}


def parse_time_window(value: Any) -> TimeWindow:
    if isinstance(value, TimeWindow):
        return value
    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    window = _WINDOW_ALIASES.get(key)
    if window is None:
        allowed = ", ".join(w.value for w in TimeWindow)
        raise InvalidTimeWindowError(f"Unknown time window {value!r}; expected one of: {allowed}")
    return window


@dataclass(frozen=True)
class PeriodTotals:
    days: int = 0
    impressions: int = 0
    likes: int = 0
    reposts: int = 0
    replies: int = 0
    net_followers: int = 0
    engagement_rate: float = 0.0


@dataclass(frozen=True)
class TrendDeltas:
    impressions_pct: float
    likes_pct: float
    followers_delta: int
    engagement_rate_delta: float
    current: PeriodTotals
    previous: PeriodTotals


@dataclass(frozen=True)
class DashboardView:
    """A time-filtered dataset plus the rollups shown next to it."""

    window: TimeWindow
    reference_date: date | None
    start_date: date | None
    dataset: MergedDataset
    content_type_performance: tuple[HookPerformance, ...]
    trends: TrendDeltas

    @property
    def hook_performance(self) -> tuple[HookPerformance, ...]:
        return self.dataset.hook_performance


def reference_date(dataset: MergedDataset) -> date | None:
    """
    The most recent date present in the dataset.

    Exports are historical snapshots, so windows are anchored here rather than
    on the wall clock. The post daily series is not consulted: its bucket for
    undated posts is the processing day, not a date present in the data.
    """
    dates: list[date] = []
    if dataset.account is not None:
        dates.extend(d.date for d in dataset.account.days)
    if dataset.content is not None:
        dates.extend(p.timestamp.date() for p in dataset.content.posts if p.timestamp is not None)
    if dataset.video is not None:
        dates.extend(d.date for d in dataset.video.days)
    return max(dates) if dates else None


def window_start(window: TimeWindow, reference: date | None) -> date | None:
    n = window.days
    if n is None or reference is None:
        return None
    return reference - timedelta(days=n - 1)


def _in_range(day: date, start: date | None, end: date | None) -> bool:
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def post_in_window(post: PostItem, start: date | None, end: date | None) -> bool:
    # Undated posts are kept rather than silently dropped.
    if post.timestamp is None:
        return True
    return _in_range(post.timestamp.date(), start, end)


def filter_dataset(
    dataset: MergedDataset,
    window: TimeWindow,
    *,
    reference: date | None = None,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
) -> MergedDataset:
    ref = reference if reference is not None else reference_date(dataset)
    start = window_start(window, ref)
    if start is None:
        return dataset

    account = None
    if dataset.account is not None:
        days = tuple(d for d in dataset.account.days if _in_range(d.date, start, ref))
        account = AccountOverviewResult(days=days, totals=sum_totals(days))

    content = None
    if dataset.content is not None:
        posts = tuple(p for p in dataset.content.posts if post_in_window(p, start, ref))
        content = ContentAnalyticsResult(
            posts=posts,
            daily=tuple(d for d in dataset.content.daily if _in_range(d.date, start, ref)),
            top_posts=rank_top_posts(posts, limit=top_limit),
            totals=sum_totals(posts),
        )

    video = None
    if dataset.video is not None:
        vdays = tuple(d for d in dataset.video.days if _in_range(d.date, start, ref))
        video = VideoAnalyticsResult(days=vdays, summary=summarize_video(vdays))

    return assemble_dataset(
        account=account,
        content=content,
        video=video,
        sources=dataset.sources,
        profile_followers=dataset.profile_followers,
    )


def period_totals(days: Sequence[DailyMetric]) -> PeriodTotals:
    t = sum_totals(days)
    return PeriodTotals(
        days=len(days),
        impressions=t.impressions,
        likes=t.likes,
        reposts=t.reposts,
        replies=t.replies,
        net_followers=t.net_followers,
        engagement_rate=engagement_rate(t.likes, t.reposts, t.replies, t.impressions),
    )


def split_periods(
    series: Sequence[DailyMetric],
    window: TimeWindow,
    reference: date | None,
) -> tuple[list[DailyMetric], list[DailyMetric]]:
    """
    Split a series into (previous, current) halves of equal length.

    Dated windows split by calendar range ending at `reference`; all time
    splits the ordered series by count.
    """
    ordered = sorted(series, key=lambda d: d.date)
    n = window.days

    if n is None or reference is None:
        half = len(ordered) // 2
        if half == 0:
            return [], []
        return ordered[:half], ordered[len(ordered) - half :]

    half = n // 2
    current_start = reference - timedelta(days=half - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=half - 1)

    current = [d for d in ordered if _in_range(d.date, current_start, reference)]
    previous = [d for d in ordered if _in_range(d.date, previous_start, previous_end)]
    return previous, current


def compute_trends(
    series: Sequence[DailyMetric],
    window: TimeWindow,
    reference: date | None,
) -> TrendDeltas:
    previous_days, current_days = split_periods(series, window, reference)
    prev = period_totals(previous_days)
    cur = period_totals(current_days)

    return TrendDeltas(
        impressions_pct=percent_change(cur.impressions, prev.impressions),
        likes_pct=percent_change(cur.likes, prev.likes),
        followers_delta=cur.net_followers - prev.net_followers,
        engagement_rate_delta=round(cur.engagement_rate - prev.engagement_rate, 1),
        current=cur,
        previous=prev,
    )


def build_view(
    dataset: MergedDataset,
    window: TimeWindow | str,
    *,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
) -> DashboardView:
    """
    Filter a dataset to a time window and compute its rollups and trends.

    Raises InvalidTimeWindowError for unsupported window values.
    """
    win = parse_time_window(window)
    ref = reference_date(dataset)
    filtered = filter_dataset(dataset, win, reference=ref, top_limit=top_limit)

    posts = filtered.content.posts if filtered.content is not None else ()

    return DashboardView(
        window=win,
        reference_date=ref,
        start_date=window_start(win, ref),
        dataset=filtered,
        content_type_performance=performance_by(posts, "content_type"),
        trends=compute_trends(filtered.daily_series, win, ref),
    )


def format_relative_date(when: datetime | date | None, *, now: datetime | None = None) -> str:
    """
    Short display label: "Today", "Yesterday", "3 days ago", "2 weeks ago", "Jan 5, 2024".
    """
    if when is None:
        return "Unknown"
    moment = when if isinstance(when, datetime) else datetime(when.year, when.month, when.day)
    current = now or datetime.now()

    diff_days = int((current - moment).total_seconds() // 86400)
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Yesterday"
    if 1 < diff_days < 7:
        return f"{diff_days} days ago"
    if 7 <= diff_days < 30:
        return f"{diff_days // 7} weeks ago"
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"


def format_posted_at(when: datetime | None) -> str:
    if when is None:
        return ""
    hour = when.hour % 12 or 12
    suffix = "AM" if when.hour < 12 else "PM"
    return f"{hour}:{when.minute:02d} {suffix}"
