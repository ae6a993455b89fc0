from __future__ import annotations

import math
from collections import OrderedDict
from typing import Iterable

from .records import (
    AccountOverviewResult,
    ContentAnalyticsResult,
    DatasetSummary,
    HookPerformance,
    PostItem,
    VideoAnalyticsResult,
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def engagement_rate(likes: int, reposts: int, replies: int, impressions: int) -> float:
    """
    (likes + reposts + replies) / impressions as a percentage, one decimal.

    Zero impressions yield 0.0.
    """
    if impressions <= 0:
        return 0.0
    return round((likes + reposts + replies) / impressions * 100.0, 1)


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100.0, 1)


def performance_by(posts: Iterable[PostItem], attr: str = "hook_type") -> tuple[HookPerformance, ...]:
    """
    Roll posts up by a category attribute (hook_type or content_type).

    Groups are ordered by average impressions, highest first.
    """
    groups: "OrderedDict[str, list[int]]" = OrderedDict()
    for post in posts:
        label = str(getattr(post, attr) or "Unknown")
        stats = groups.setdefault(label, [0, 0, 0])
        stats[0] += post.impressions
        stats[1] += post.engagement
        stats[2] += 1

    out: list[HookPerformance] = []
    for label, (impressions, engagement, n) in groups.items():
        if n <= 0:
            continue
        out.append(
            HookPerformance(
                label=label,
                avg_impressions=_round_half_up(impressions / n),
                avg_engagement=round(engagement / impressions * 100.0, 1) if impressions > 0 else 0.0,
                posts=n,
            )
        )

    out.sort(key=lambda s: s.avg_impressions, reverse=True)
    return tuple(out)


def summarize(
    *,
    account: AccountOverviewResult | None,
    content: ContentAnalyticsResult | None,
    video: VideoAnalyticsResult | None,
    profile_followers: int | None = None,
) -> DatasetSummary:
    """
    Running totals for the dashboard cards.

    Account-level totals are authoritative; post-derived totals are used only
    when no account overview is present.
    """
    totals = None
    if account is not None and account.days:
        totals = account.totals
    elif content is not None:
        totals = content.totals

    if profile_followers is not None:
        followers = int(profile_followers)
    elif account is not None and account.days:
        followers = account.days[-1].followers
    elif content is not None and content.daily:
        followers = content.daily[-1].followers
    else:
        followers = 0

    video_summary = video.summary if video is not None else None

    return DatasetSummary(
        total_impressions=totals.impressions if totals else 0,
        total_likes=totals.likes if totals else 0,
        total_reposts=totals.reposts if totals else 0,
        total_replies=totals.replies if totals else 0,
        total_bookmarks=totals.bookmarks if totals else 0,
        total_shares=totals.shares if totals else 0,
        current_followers=followers,
        engagement_rate=(
            engagement_rate(totals.likes, totals.reposts, totals.replies, totals.impressions)
            if totals
            else 0.0
        ),
        total_posts=len(content.posts) if content is not None else 0,
        video_views=video_summary.total_views if video_summary else 0,
        watch_time_minutes=video_summary.watch_time_minutes if video_summary else 0,
        avg_completion_rate=video_summary.avg_completion_rate if video_summary else 0.0,
        estimated_revenue=video_summary.estimated_revenue if video_summary else 0.0,
    )
