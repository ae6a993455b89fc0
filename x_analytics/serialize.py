from __future__ import annotations

import dataclasses
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Protocol, TypeVar

from .analytics import DashboardView, format_posted_at, format_relative_date
from .errors import StorageError
from .merge import merge_transforms
from .normalize import ALIAS_TABLE_VERSION, parse_date, parse_datetime, to_float, to_int
from .records import (
    DailyMetric,
    FileTransform,
    MergedDataset,
    PostItem,
    RecordType,
    VideoDayMetric,
)
from .transform import (
    DEFAULT_TOP_POSTS_LIMIT,
    build_account_result,
    build_content_result,
    build_video_result,
)

PAYLOAD_FORMAT_VERSION = 1

T = TypeVar("T")


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


def to_jsonable(value: Any) -> Any:
    """
    Convert dataclasses, dates and enums into JSON-safe primitives.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, float) and value != value:
        return 0.0
    return value


def _from_dict(cls: type[T], data: Mapping[str, Any], *, date_fields: tuple[str, ...] = ()) -> T:
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):  # type: ignore[arg-type]
        if f.name in date_fields:
            kwargs[f.name] = parse_date(data.get(f.name))
            continue
        if f.name not in data:
            continue
        raw = data[f.name]
        if f.name == "id":
            kwargs[f.name] = str(raw)
        elif f.name == "timestamp":
            kwargs[f.name] = parse_datetime(raw)
        elif f.type in ("int", int):
            kwargs[f.name] = to_int(raw)
        elif f.type in ("float", float):
            kwargs[f.name] = to_float(raw)
        else:
            kwargs[f.name] = raw
    return cls(**kwargs)


def daily_from_dict(data: Mapping[str, Any]) -> DailyMetric:
    day = _from_dict(DailyMetric, data, date_fields=("date",))
    if day.date is None:
        raise StorageError(f"Stored daily metric has no valid date: {data.get('date')!r}")
    return day


def video_day_from_dict(data: Mapping[str, Any]) -> VideoDayMetric:
    day = _from_dict(VideoDayMetric, data, date_fields=("date",))
    if day.date is None:
        raise StorageError(f"Stored video metric has no valid date: {data.get('date')!r}")
    return day


def post_from_dict(data: Mapping[str, Any]) -> PostItem:
    if not str(data.get("id") or "").strip():
        raise StorageError("Stored post has no id")
    return _from_dict(PostItem, data)


def post_view(post: PostItem, *, now: datetime | None = None) -> dict[str, Any]:
    """
    A post as consumed by cards: stored fields plus display date labels.
    """
    out = to_jsonable(post)
    out["engagement"] = post.engagement
    out["date"] = format_relative_date(post.timestamp, now=now)
    out["posted_at"] = format_posted_at(post.timestamp)
    return out


def dataset_to_payload(dataset: MergedDataset, *, now: datetime | None = None) -> dict[str, Any]:
    """
    Serialize a dataset to JSON-safe primitives.

    Source records are stored for rebuilding; projections are included for
    consumers that only read.
    """
    return {
        "format_version": PAYLOAD_FORMAT_VERSION,
        "alias_table_version": ALIAS_TABLE_VERSION,
        "sources": list(dataset.sources),
        "profile_followers": dataset.profile_followers,
        "account": (
            {"days": to_jsonable(dataset.account.days)} if dataset.account is not None else None
        ),
        "content": (
            {"posts": to_jsonable(dataset.content.posts)} if dataset.content is not None else None
        ),
        "video": {"days": to_jsonable(dataset.video.days)} if dataset.video is not None else None,
        "projections": {
            "daily_series": to_jsonable(dataset.daily_series),
            "top_posts": [post_view(p, now=now) for p in dataset.top_posts],
            "hook_performance": to_jsonable(dataset.hook_performance),
            "summary": to_jsonable(dataset.summary),
        },
    }


def _section(payload: Mapping[str, Any], name: str, key: str) -> list[Mapping[str, Any]] | None:
    section = payload.get(name)
    if section is None:
        return None
    if not isinstance(section, Mapping) or not isinstance(section.get(key), list):
        raise StorageError(f"Stored dataset section {name!r} is malformed")
    return [item for item in section[key] if isinstance(item, Mapping)]


def dataset_from_payload(
    payload: Mapping[str, Any],
    *,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
    fallback_day: date | None = None,
) -> MergedDataset:
    """
    Rebuild a dataset from a stored payload.

    Derived values are recomputed from the stored source records.
    """
    if not isinstance(payload, Mapping):
        raise StorageError("Stored dataset is not an object")

    version = to_int(payload.get("format_version"))
    if version != PAYLOAD_FORMAT_VERSION:
        raise StorageError(f"Unsupported stored dataset format_version={version}")

    sources = [str(s) for s in payload.get("sources") or [] if isinstance(s, str)]
    label = sources[0] if len(sources) == 1 else "stored dataset"

    transforms: list[FileTransform] = []

    account_days = _section(payload, "account", "days")
    if account_days is not None:
        days = [daily_from_dict(d) for d in account_days]
        transforms.append(FileTransform(label, RecordType.ACCOUNT_OVERVIEW, build_account_result(days)))

    posts = _section(payload, "content", "posts")
    if posts is not None:
        items = [post_from_dict(p) for p in posts]
        result = build_content_result(items, top_limit=top_limit, fallback_day=fallback_day)
        transforms.append(FileTransform(label, RecordType.CONTENT_ANALYTICS, result))

    video_days = _section(payload, "video", "days")
    if video_days is not None:
        vdays = [video_day_from_dict(d) for d in video_days]
        transforms.append(FileTransform(label, RecordType.VIDEO_ANALYTICS, build_video_result(vdays)))

    followers = payload.get("profile_followers")
    return merge_transforms(
        transforms,
        top_limit=top_limit,
        fallback_day=fallback_day,
        profile_followers=to_int(followers) if followers is not None else None,
        sources=sources,
    )


def view_to_payload(
    view: DashboardView,
    *,
    summary_limit: int = 5,
    now: datetime | None = None,
) -> dict[str, Any]:
    ds = view.dataset
    top_posts = [post_view(p, now=now) for p in ds.top_posts]
    return {
        "window": view.window.value,
        "reference_date": to_jsonable(view.reference_date),
        "start_date": to_jsonable(view.start_date),
        "sources": list(ds.sources),
        "summary": to_jsonable(ds.summary),
        "trends": to_jsonable(view.trends),
        "daily_series": to_jsonable(ds.daily_series),
        "top_posts": top_posts,
        "summary_posts": top_posts[: max(0, summary_limit)],
        "hook_performance": to_jsonable(ds.hook_performance),
        "content_type_performance": to_jsonable(view.content_type_performance),
        "video_days": to_jsonable(ds.video.days) if ds.video is not None else [],
        "video_summary": to_jsonable(ds.video.summary) if ds.video is not None else None,
    }


def save_dataset(store: KeyValueStore, dataset: MergedDataset, *, key: str) -> None:
    store.set(key, dataset_to_payload(dataset))


def load_dataset(
    store: KeyValueStore,
    *,
    key: str,
    top_limit: int = DEFAULT_TOP_POSTS_LIMIT,
    fallback_day: date | None = None,
) -> MergedDataset | None:
    payload = store.get(key, None)
    if payload is None:
        return None
    return dataset_from_payload(payload, top_limit=top_limit, fallback_day=fallback_day)


def clear_dataset(store: KeyValueStore, *, key: str) -> None:
    store.remove(key)
