from __future__ import annotations

import hashlib
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, Mapping, Sequence

from .classify import classify_columns
from .decode import decode_table
from .errors import MalformedSchemaError, UnrecognizedSchemaError
from .hooks import DEFAULT_LONG_FORM_MIN_CHARS, detect_content_type, detect_hook_type
from .normalize import (
    ACCOUNT_OVERVIEW_ALIASES,
    CONTENT_ANALYTICS_ALIASES,
    VIDEO_ANALYTICS_ALIASES,
    count,
    field_float,
    field_int,
    field_text,
    parse_date,
    parse_datetime,
)
from .records import (
    AccountOverviewResult,
    ContentAnalyticsResult,
    DailyMetric,
    FileTransform,
    PostItem,
    RecordType,
    TransformResult,
    VideoAnalyticsResult,
    VideoDayMetric,
    VideoSummary,
    sum_totals,
)

DEFAULT_TOP_POSTS_LIMIT = 10

RawRecord = Mapping[str, str]


@dataclass(frozen=True)
class TransformOptions:
    top_posts_limit: int = DEFAULT_TOP_POSTS_LIMIT
    long_form_min_chars: int = DEFAULT_LONG_FORM_MIN_CHARS
    # Bucket for posts whose timestamp cannot be parsed; defaults to the processing day.
    today: date | None = None

    def fallback_day(self) -> date:
        return self.today or date.today()


# Account overview


def accumulate_followers(days: Iterable[DailyMetric]) -> tuple[DailyMetric, ...]:
    """
    Sort days chronologically (stable) and attach a running follower count.

    Exports report follower deltas, not absolute counts, so the series starts at zero.
    """
    ordered = sorted(days, key=lambda d: d.date)
    out: list[DailyMetric] = []
    running = 0
    for day in ordered:
        running += day.new_follows - day.unfollows
        out.append(replace(day, followers=running))
    return tuple(out)


def build_account_result(days: Iterable[DailyMetric]) -> AccountOverviewResult:
    series = accumulate_followers(days)
    return AccountOverviewResult(days=series, totals=sum_totals(series))


def daily_metric_from_record(record: RawRecord) -> DailyMetric | None:
    a = ACCOUNT_OVERVIEW_ALIASES
    day = parse_date(field_text(record, a["date"]))
    if day is None:
        return None

    return DailyMetric(
        date=day,
        impressions=count(record, a["impressions"]),
        likes=count(record, a["likes"]),
        reposts=count(record, a["reposts"]),
        shares=count(record, a["shares"]),
        replies=count(record, a["replies"]),
        bookmarks=count(record, a["bookmarks"]),
        new_follows=field_int(record, a["new_follows"]),
        unfollows=field_int(record, a["unfollows"]),
        profile_visits=count(record, a["profile_visits"]),
        video_views=count(record, a["video_views"]),
        media_views=count(record, a["media_views"]),
    )


def transform_account_overview(records: Iterable[RawRecord]) -> AccountOverviewResult:
    days = [m for m in (daily_metric_from_record(r) for r in records) if m is not None]
    if not days:
        raise MalformedSchemaError("Account overview has no rows with a readable date")
    return build_account_result(days)


# Content analytics


def post_from_record(
    record: RawRecord,
    index: int,
    *,
    source: str = "upload",
    long_form_min_chars: int = DEFAULT_LONG_FORM_MIN_CHARS,
) -> PostItem | None:
    """
    Build a PostItem from one content export row.

    Returns None for genuinely empty rows: no text and no positive metric.
    """
    a = CONTENT_ANALYTICS_ALIASES
    text = field_text(record, a["text"])

    metrics = {
        name: count(record, a[name])
        for name in (
            "impressions",
            "likes",
            "reposts",
            "shares",
            "replies",
            "bookmarks",
            "new_follows",
            "profile_visits",
            "url_clicks",
            "hashtag_clicks",
            "permalink_clicks",
            "detail_expands",
        )
    }
    if not text and not any(v > 0 for v in metrics.values()):
        return None

    post_id = field_text(record, a["id"]) or f"{source}#row-{index + 1}"

    return PostItem(
        id=post_id,
        text=text,
        timestamp=parse_datetime(field_text(record, a["time"])),
        link=field_text(record, a["link"]) or None,
        hook_type=detect_hook_type(text),
        content_type=detect_content_type(text, long_form_min_chars=long_form_min_chars),
        **metrics,
    )


def daily_from_posts(posts: Iterable[PostItem], *, fallback_day: date) -> tuple[DailyMetric, ...]:
    """
    Aggregate posts per calendar day.

    Posts without a readable timestamp are kept and counted under `fallback_day`
    so that uploaded totals are preserved.
    """
    buckets: "OrderedDict[date, list[PostItem]]" = OrderedDict()
    for post in posts:
        day = post.timestamp.date() if post.timestamp is not None else fallback_day
        buckets.setdefault(day, []).append(post)

    days: list[DailyMetric] = []
    for day, items in buckets.items():
        t = sum_totals(items)
        days.append(
            DailyMetric(
                date=day,
                impressions=t.impressions,
                likes=t.likes,
                reposts=t.reposts,
                shares=t.shares,
                replies=t.replies,
                bookmarks=t.bookmarks,
                new_follows=t.new_follows,
                profile_visits=t.profile_visits,
            )
        )
    return accumulate_followers(days)


def rank_top_posts(posts: Iterable[PostItem], *, limit: int = DEFAULT_TOP_POSTS_LIMIT) -> tuple[PostItem, ...]:
    """
    Posts with any reach, by impressions descending; ties keep source order.
    """
    if limit <= 0:
        return ()
    candidates = [p for p in posts if p.impressions > 0 or p.likes > 0]
    candidates.sort(key=lambda p: p.impressions, reverse=True)
    return tuple(candidates[:limit])


def build_content_result(
    posts: Iterable[PostItem],
    *,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
    fallback_day: date | None = None,
) -> ContentAnalyticsResult:
    items = tuple(posts)
    return ContentAnalyticsResult(
        posts=items,
        daily=daily_from_posts(items, fallback_day=fallback_day or date.today()),
        top_posts=rank_top_posts(items, limit=top_limit),
        totals=sum_totals(items),
    )


def fill_daily_gaps(
    content: ContentAnalyticsResult,
    *,
    followers: int | None = None,
) -> ContentAnalyticsResult:
    """
    Zero-fill every missing day between the earliest and latest dated post.

    When `followers` is known it is carried on every day of the series;
    otherwise the running count from post deltas is kept.
    """
    dated = [p.timestamp.date() for p in content.posts if p.timestamp is not None]
    by_day = {d.date: d for d in content.daily}
    if dated:
        day, last = min(dated), max(dated)
        while day <= last:
            by_day.setdefault(day, DailyMetric(date=day))
            day += timedelta(days=1)

    series = accumulate_followers(by_day.values())
    if followers is not None:
        series = tuple(replace(d, followers=followers) for d in series)
    return replace(content, daily=series)


def transform_content_analytics(
    records: Sequence[RawRecord],
    *,
    source: str = "upload",
    options: TransformOptions | None = None,
) -> ContentAnalyticsResult:
    opts = options or TransformOptions()
    posts: list[PostItem] = []
    for idx, record in enumerate(records):
        post = post_from_record(
            record,
            idx,
            source=source,
            long_form_min_chars=opts.long_form_min_chars,
        )
        if post is not None:
            posts.append(post)

    if not posts:
        raise MalformedSchemaError("Content analytics has no usable post rows")

    return build_content_result(
        posts,
        top_limit=opts.top_posts_limit,
        fallback_day=opts.fallback_day(),
    )


# Video analytics


def summarize_video(days: Sequence[VideoDayMetric]) -> VideoSummary:
    if not days:
        return VideoSummary()

    total_ms = sum(d.watch_time_ms for d in days)
    mean_completion = sum(d.completion_rate for d in days) / len(days)

    return VideoSummary(
        days=len(days),
        total_views=sum(d.views for d in days),
        watch_time_minutes=(total_ms + 30_000) // 60_000,
        avg_completion_rate=round(mean_completion, 1),
        estimated_revenue=round(sum(d.estimated_revenue for d in days), 2),
    )


def build_video_result(days: Iterable[VideoDayMetric]) -> VideoAnalyticsResult:
    ordered = tuple(sorted(days, key=lambda d: d.date))
    return VideoAnalyticsResult(days=ordered, summary=summarize_video(ordered))


def video_day_from_record(record: RawRecord) -> VideoDayMetric | None:
    a = VIDEO_ANALYTICS_ALIASES
    day = parse_date(field_text(record, a["date"]))
    if day is None:
        return None

    completion = min(100.0, max(0.0, field_float(record, a["completion_rate"])))
    return VideoDayMetric(
        date=day,
        views=count(record, a["views"]),
        watch_time_ms=count(record, a["watch_time_ms"]),
        completion_rate=completion,
        average_watch_time_ms=count(record, a["average_watch_time_ms"]),
        estimated_revenue=max(0.0, field_float(record, a["estimated_revenue"])),
    )


def transform_video_analytics(records: Iterable[RawRecord]) -> VideoAnalyticsResult:
    days = [d for d in (video_day_from_record(r) for r in records) if d is not None]
    if not days:
        raise MalformedSchemaError("Video analytics has no rows with a readable date")
    return build_video_result(days)


# Dispatch


def content_digest(content: str) -> str:
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()[:10]


def transform_records(
    record_type: RecordType,
    records: Sequence[RawRecord],
    *,
    source: str = "upload",
    options: TransformOptions | None = None,
) -> TransformResult:
    if record_type is RecordType.ACCOUNT_OVERVIEW:
        return transform_account_overview(records)
    if record_type is RecordType.CONTENT_ANALYTICS:
        return transform_content_analytics(records, source=source, options=options)
    if record_type is RecordType.VIDEO_ANALYTICS:
        return transform_video_analytics(records)
    raise UnrecognizedSchemaError("Columns do not match a known analytics export")


def transform_file(
    name: str,
    content: str,
    *,
    options: TransformOptions | None = None,
) -> FileTransform:
    """
    Decode, classify and transform the text of one uploaded file.

    Raises EmptyInputError, UnrecognizedSchemaError or MalformedSchemaError.
    """
    table = decode_table(content)
    record_type = classify_columns(table.columns)
    if record_type is RecordType.UNKNOWN:
        cols = ", ".join(table.columns[:8]) or "<none>"
        raise UnrecognizedSchemaError(f"Columns do not match a known analytics export: {cols}")

    # Synthesized post ids carry a digest of the file so same-named uploads do not collide.
    source = f"{name}@{content_digest(content)}"
    result = transform_records(record_type, table.records, source=source, options=options)
    return FileTransform(name=name, record_type=record_type, result=result)
