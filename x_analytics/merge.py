from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from .dedupe import first_seen_posts
from .metrics import performance_by, summarize
from .records import (
    AccountOverviewResult,
    ContentAnalyticsResult,
    DailyMetric,
    FileTransform,
    MergedDataset,
    PostItem,
    RecordType,
    VideoAnalyticsResult,
    VideoDayMetric,
)
from .transform import (
    DEFAULT_TOP_POSTS_LIMIT,
    build_account_result,
    build_content_result,
    build_video_result,
    fill_daily_gaps,
)


def _unique_names(names: Iterable[str]) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for n in names:
        name = (n or "").strip()
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return tuple(out)


def assemble_dataset(
    *,
    account: AccountOverviewResult | None,
    content: ContentAnalyticsResult | None,
    video: VideoAnalyticsResult | None,
    sources: Sequence[str] = (),
    profile_followers: int | None = None,
) -> MergedDataset:
    """
    Attach the presentation projections to a set of per-type results.
    """
    if account is not None and account.days:
        series = account.days
    elif content is not None:
        series = content.daily
    else:
        series = ()

    return MergedDataset(
        account=account,
        content=content,
        video=video,
        daily_series=tuple(series),
        top_posts=content.top_posts if content is not None else (),
        hook_performance=performance_by(content.posts, "hook_type") if content is not None else (),
        summary=summarize(
            account=account,
            content=content,
            video=video,
            profile_followers=profile_followers,
        ),
        sources=_unique_names(sources),
        profile_followers=profile_followers,
    )


def merge_transforms(
    transforms: Iterable[FileTransform],
    *,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
    fallback_day: date | None = None,
    profile_followers: int | None = None,
    sources: Sequence[str] | None = None,
) -> MergedDataset:
    """
    Combine per-file transforms, in processing order, into one dataset.

    Account and video days are whole-file period summaries and are concatenated.
    Posts are deduplicated by id; the first occurrence wins. A known profile
    follower count gap-fills the post daily series, as API datasets are built.
    """
    items = list(transforms)

    account_days: list[DailyMetric] = []
    post_batches: list[Sequence[PostItem]] = []
    video_days: list[VideoDayMetric] = []
    has_account = has_content = has_video = False

    for t in items:
        if t.record_type is RecordType.ACCOUNT_OVERVIEW and isinstance(t.result, AccountOverviewResult):
            has_account = True
            account_days.extend(t.result.days)
        elif t.record_type is RecordType.CONTENT_ANALYTICS and isinstance(t.result, ContentAnalyticsResult):
            has_content = True
            post_batches.append(t.result.posts)
        elif t.record_type is RecordType.VIDEO_ANALYTICS and isinstance(t.result, VideoAnalyticsResult):
            has_video = True
            video_days.extend(t.result.days)
        else:
            raise TypeError(f"Transform {t.name!r} has mismatched record type {t.record_type}")

    account = build_account_result(account_days) if has_account else None
    content = (
        build_content_result(
            first_seen_posts(post_batches),
            top_limit=top_limit,
            fallback_day=fallback_day,
        )
        if has_content
        else None
    )
    if content is not None and profile_followers is not None:
        content = fill_daily_gaps(content, followers=profile_followers)
    video = build_video_result(video_days) if has_video else None

    return assemble_dataset(
        account=account,
        content=content,
        video=video,
        sources=[t.name for t in items] if sources is None else sources,
        profile_followers=profile_followers,
    )


def dataset_transforms(dataset: MergedDataset) -> list[FileTransform]:
    """
    Express a dataset's source records as transforms so it can be merged again.
    """
    name = dataset.sources[0] if len(dataset.sources) == 1 else "stored dataset"
    out: list[FileTransform] = []
    if dataset.account is not None:
        out.append(FileTransform(name, RecordType.ACCOUNT_OVERVIEW, dataset.account))
    if dataset.content is not None:
        out.append(FileTransform(name, RecordType.CONTENT_ANALYTICS, dataset.content))
    if dataset.video is not None:
        out.append(FileTransform(name, RecordType.VIDEO_ANALYTICS, dataset.video))
    return out
