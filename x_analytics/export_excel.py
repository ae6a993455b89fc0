from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from .analytics import DashboardView
from .errors import ExportError
from .serialize import post_view, to_jsonable

_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")

SHEET_NAMES = (
    "summary",
    "daily_series",
    "top_posts",
    "hook_performance",
    "content_types",
    "video_days",
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_excel_text(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    if value.startswith(_EXCEL_FORMULA_PREFIXES):
        return "'" + value
    return value


def _safe_rows(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [{k: _safe_excel_text(v) for k, v in row.items()} for row in rows]


def _summary_rows(view: DashboardView, out: Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = [
        {"key": "window", "value": view.window.value},
        {"key": "reference_date", "value": to_jsonable(view.reference_date)},
        {"key": "start_date", "value": to_jsonable(view.start_date)},
        {"key": "sources", "value": ", ".join(view.dataset.sources)},
        {"key": "exported_at_utc", "value": _utc_now_iso()},
        {"key": "output_path", "value": str(out)},
    ]
    for k, v in to_jsonable(view.dataset.summary).items():
        rows.append({"key": f"summary.{k}", "value": v})

    trends = to_jsonable(view.trends)
    for k, v in trends.items():
        if isinstance(v, dict):
            for sub, sv in v.items():
                rows.append({"key": f"trends.{k}.{sub}", "value": sv})
        else:
            rows.append({"key": f"trends.{k}", "value": v})
    return rows


def export_dashboard_workbook(
    view: DashboardView,
    out_path: str | Path,
    *,
    now: datetime | None = None,
) -> Path:
    try:
        import pandas as pd  # type: ignore[import-not-found]
    except Exception as e:
        raise ExportError("pandas is required for Excel export") from e

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    ds = view.dataset
    frames = {
        "summary": pd.DataFrame(_safe_rows(_summary_rows(view, out))),
        "daily_series": pd.DataFrame(_safe_rows(to_jsonable(ds.daily_series))),
        "top_posts": pd.DataFrame(_safe_rows(post_view(p, now=now) for p in ds.top_posts)),
        "hook_performance": pd.DataFrame(_safe_rows(to_jsonable(ds.hook_performance))),
        "content_types": pd.DataFrame(_safe_rows(to_jsonable(view.content_type_performance))),
        "video_days": pd.DataFrame(
            _safe_rows(to_jsonable(ds.video.days) if ds.video is not None else [])
        ),
    }

    try:
        with pd.ExcelWriter(out, engine="openpyxl") as writer:
            for name in SHEET_NAMES:
                frames[name].to_excel(writer, sheet_name=name, index=False)

            wb = writer.book
            for name in SHEET_NAMES:
                if name in wb.sheetnames:
                    wb[name].freeze_panes = "A2"
    except Exception as e:
        raise ExportError(f"Failed to write workbook: {out}: {e}") from e

    return out
