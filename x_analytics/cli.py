from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from .analytics import DashboardView, build_view
from .config import load_config_or_default
from .config_schema import AppConfig
from .errors import (
    BatchImportError,
    ConfigError,
    ExportError,
    IngestError,
    InvalidTimeWindowError,
    StorageError,
)
from .export_excel import export_dashboard_workbook
from .failure_report import build_import_report, format_import_report
from .importer import FileImportFailure, ImportResult, Upload, import_uploads, row_count
from .records import MergedDataset
from .run_log import RunLogger
from .serialize import clear_dataset, load_dataset, save_dataset, view_to_payload
from .storage import SQLiteKeyValueStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="x_analytics")

    subparsers = parser.add_subparsers(dest="command", required=True)

    imp = subparsers.add_parser(
        "import",
        help="Import exported analytics CSV files into the stored dataset.",
    )
    imp.add_argument("files", nargs="+", help="CSV export files, processed in the given order.")
    imp.add_argument("--out", required=True, help="Directory holding state and logs.")
    imp.add_argument("--config", default=None, help="Path to YAML config file.")
    imp.add_argument(
        "--replace",
        action="store_true",
        help="Start from an empty dataset instead of merging with stored data.",
    )
    imp.set_defaults(_handler=_cmd_import)

    rep = subparsers.add_parser(
        "report",
        help="Print the dashboard view for a time window as JSON.",
    )
    rep.add_argument("--out", required=True, help="Directory holding state and logs.")
    rep.add_argument("--config", default=None, help="Path to YAML config file.")
    rep.add_argument("--window", default=None, help="7d, 30d, 90d or all.")
    rep.set_defaults(_handler=_cmd_report)

    exp = subparsers.add_parser(
        "export",
        help="Write the dashboard view for a time window to an Excel workbook.",
    )
    exp.add_argument("--out", required=True, help="Directory holding state and logs.")
    exp.add_argument("--xlsx", required=True, help="Workbook path to write.")
    exp.add_argument("--config", default=None, help="Path to YAML config file.")
    exp.add_argument("--window", default=None, help="7d, 30d, 90d or all.")
    exp.set_defaults(_handler=_cmd_export)

    clr = subparsers.add_parser("clear", help="Remove the stored dataset.")
    clr.add_argument("--out", required=True, help="Directory holding state and logs.")
    clr.add_argument("--config", default=None, help="Path to YAML config file.")
    clr.set_defaults(_handler=_cmd_clear)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _db_path(cfg: AppConfig, out_dir: Path) -> Path:
    return out_dir / cfg.storage.database


def _load_stored(cfg: AppConfig, store: SQLiteKeyValueStore) -> MergedDataset:
    dataset = load_dataset(
        store,
        key=cfg.storage.dataset_key,
        top_limit=int(cfg.analytics.top_posts_limit),
    )
    return dataset if dataset is not None else MergedDataset()


def _read_uploads(paths: Sequence[str]) -> list[Upload]:
    uploads: list[Upload] = []
    for raw in paths:
        p = Path(raw)
        try:
            content = p.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as e:
            raise ConfigError(f"Cannot read upload {p}: {e}") from e
        uploads.append(Upload(name=p.name, content=content))
    return uploads


def _record_history(
    store: SQLiteKeyValueStore,
    *,
    batch_id: str,
    result: ImportResult | None,
    failures: Sequence[FileImportFailure],
) -> None:
    if result is not None:
        for t in result.imported:
            store.record_file_import(
                batch_id=batch_id,
                file_name=t.name,
                status="imported",
                record_type=t.record_type.value,
                rows=row_count(t),
            )
    for f in failures:
        store.record_file_import(
            batch_id=batch_id,
            file_name=f.name,
            status="failed",
            reason_code=f.code,
            message=f.message,
        )


def _cmd_import(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    with RunLogger.open(out_dir / "run.log") as log:
        log.info("import_command_started", config_path=args.config, files=list(args.files))

        try:
            cfg = load_config_or_default(args.config)
            uploads = _read_uploads(args.files)

            with SQLiteKeyValueStore.open(_db_path(cfg, out_dir)) as store:
                existing = MergedDataset() if args.replace else _load_stored(cfg, store)

                try:
                    result = import_uploads(uploads, config=cfg, existing=existing, logger=log)
                except BatchImportError as e:
                    failures = [f for f in e.failures if isinstance(f, FileImportFailure)]
                    _record_history(store, batch_id=e.batch_id, result=None, failures=failures)
                    report = build_import_report(
                        failures=failures,
                        imported=0,
                        batch_policy=cfg.imports.batch_policy,
                    )
                    log.error("import_command_rejected", report=report)
                    _eprint(format_import_report(report))
                    return 3

                _record_history(store, batch_id=result.batch_id, result=result, failures=result.failures)
                if result.imported:
                    save_dataset(store, result.dataset, key=cfg.storage.dataset_key)

            report = build_import_report(
                failures=result.failures,
                imported=len(result.imported),
                batch_policy=cfg.imports.batch_policy,
            )
            log.info("import_command_completed", status=report["status"])

            print(format_import_report(report))
            print(f"batch_id={result.batch_id}")
            print(f"sources={','.join(result.dataset.sources)}")
            print(f"total_posts={result.dataset.summary.total_posts}")
            print(f"total_impressions={result.dataset.summary.total_impressions}")
            print(f"current_followers={result.dataset.summary.current_followers}")

            return 0 if result.ok else 4
        except Exception as e:
            log.exception("import_command_failed", exc=e)
            raise


def _view_for(args: argparse.Namespace) -> tuple[AppConfig, DashboardView]:
    cfg = load_config_or_default(args.config)
    window = args.window or cfg.analytics.default_window

    db_path = _db_path(cfg, Path(args.out))
    with SQLiteKeyValueStore.open(db_path) as store:
        dataset = _load_stored(cfg, store)

    view = build_view(dataset, window, top_limit=int(cfg.analytics.top_posts_limit))
    return cfg, view


def _cmd_report(args: argparse.Namespace) -> int:
    cfg, view = _view_for(args)
    payload = view_to_payload(view, summary_limit=int(cfg.analytics.summary_posts_limit))
    print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    _, view = _view_for(args)
    path = export_dashboard_workbook(view, args.xlsx)
    print(f"workbook={path}")
    return 0


def _cmd_clear(args: argparse.Namespace) -> int:
    cfg = load_config_or_default(args.config)
    with SQLiteKeyValueStore.open(_db_path(cfg, Path(args.out))) as store:
        clear_dataset(store, key=cfg.storage.dataset_key)
    print("cleared=1")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (IngestError, InvalidTimeWindowError, StorageError, ExportError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
