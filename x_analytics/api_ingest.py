from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from .errors import MalformedSchemaError
from .hooks import detect_content_type, detect_hook_type
from .merge import assemble_dataset
from .normalize import parse_datetime, to_int
from .records import ContentAnalyticsResult, MergedDataset, PostItem
from .transform import TransformOptions, build_content_result, fill_daily_gaps

API_SOURCE = "api"


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_id(value: Any) -> str | None:
    if isinstance(value, str):
        v = value.strip()
        return v if v else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def _metric(metrics: Mapping[str, Any], *keys: str) -> int:
    for key in keys:
        if key in metrics and metrics[key] is not None:
            return max(0, to_int(metrics[key]))
    return 0


def post_from_api_item(
    item: Mapping[str, Any],
    index: int,
    *,
    long_form_min_chars: int,
) -> PostItem | None:
    """
    Best-effort extraction of a PostItem from one API tweet object.

    Metrics are read from `public_metrics`, falling back to top-level keys.
    """
    if not isinstance(item, Mapping):
        return None

    metrics_obj = item.get("public_metrics")
    metrics: Mapping[str, Any] = metrics_obj if isinstance(metrics_obj, Mapping) else item

    text = _coerce_str(item.get("text")) or ""
    post_id = _coerce_id(item.get("id")) or f"{API_SOURCE}#row-{index + 1}"

    refs = item.get("referenced_tweets")
    referenced = [r for r in refs if isinstance(r, Mapping)] if isinstance(refs, list) else None

    return PostItem(
        id=post_id,
        text=text,
        timestamp=parse_datetime(item.get("created_at")),
        impressions=_metric(metrics, "impression_count", "impressions"),
        likes=_metric(metrics, "like_count", "likes"),
        reposts=_metric(metrics, "retweet_count", "repost_count", "reposts"),
        replies=_metric(metrics, "reply_count", "replies"),
        bookmarks=_metric(metrics, "bookmark_count", "bookmarks"),
        shares=_metric(metrics, "share_count", "shares"),
        hook_type=detect_hook_type(text),
        content_type=detect_content_type(
            text,
            long_form_min_chars=long_form_min_chars,
            referenced=referenced,
        ),
    )


def profile_followers(profile: Mapping[str, Any] | None) -> int | None:
    """
    Read the follower count from a normalized or raw API user profile.
    """
    if not isinstance(profile, Mapping):
        return None

    if profile.get("followers") is not None:
        return max(0, to_int(profile.get("followers")))

    metrics = profile.get("public_metrics")
    if isinstance(metrics, Mapping) and metrics.get("followers_count") is not None:
        return max(0, to_int(metrics.get("followers_count")))
    return None


def transform_api_posts(
    items: Iterable[Mapping[str, Any]],
    *,
    options: TransformOptions | None = None,
) -> ContentAnalyticsResult:
    opts = options or TransformOptions()
    posts: list[PostItem] = []
    for idx, item in enumerate(items):
        post = post_from_api_item(item, idx, long_form_min_chars=opts.long_form_min_chars)
        if post is not None:
            posts.append(post)

    if not posts:
        raise MalformedSchemaError("API response contained no usable posts")

    return build_content_result(
        posts,
        top_limit=opts.top_posts_limit,
        fallback_day=opts.fallback_day(),
    )


def dataset_from_api(
    items: Sequence[Mapping[str, Any]],
    *,
    profile: Mapping[str, Any] | None = None,
    options: TransformOptions | None = None,
) -> MergedDataset:
    """
    Build a dataset from an already-fetched API post list.

    An empty list is a valid (quiet) period and yields a dataset without content.
    The daily series covers every day between the first and last post, with the
    profile follower count on each day when it is known.
    """
    followers = profile_followers(profile)
    content = None
    if items:
        content = fill_daily_gaps(transform_api_posts(items, options=options), followers=followers)
    return assemble_dataset(
        account=None,
        content=content,
        video=None,
        sources=[API_SOURCE],
        profile_followers=followers,
    )
