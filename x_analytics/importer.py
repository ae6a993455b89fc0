from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

from .config import config_sha256, transform_options
from .config_schema import AppConfig
from .errors import BatchImportError, IngestError
from .merge import dataset_transforms, merge_transforms
from .normalize import ALIAS_TABLE_VERSION
from .records import (
    AccountOverviewResult,
    ContentAnalyticsResult,
    FileTransform,
    MergedDataset,
    VideoAnalyticsResult,
)
from .run_log import RunLogger
from .transform import transform_file


@dataclass(frozen=True)
class Upload:
    name: str
    content: str


@dataclass(frozen=True)
class FileImportFailure:
    name: str
    code: str
    message: str


@dataclass(frozen=True)
class ImportResult:
    batch_id: str
    dataset: MergedDataset
    imported: tuple[FileTransform, ...]
    failures: tuple[FileImportFailure, ...]

    @property
    def ok(self) -> bool:
        return not self.failures


def coerce_upload(item: Upload | Mapping[str, Any]) -> Upload:
    if isinstance(item, Upload):
        return item
    if isinstance(item, Mapping):
        name = str(item.get("name") or "").strip() or "upload"
        content = item.get("content")
        return Upload(name=name, content=content if isinstance(content, str) else "")
    raise TypeError(f"Unsupported upload type: {type(item).__name__}")


def row_count(transform: FileTransform) -> int:
    result = transform.result
    if isinstance(result, ContentAnalyticsResult):
        return len(result.posts)
    if isinstance(result, (AccountOverviewResult, VideoAnalyticsResult)):
        return len(result.days)
    return 0


def import_uploads(
    uploads: Iterable[Upload | Mapping[str, Any]],
    *,
    config: AppConfig | None = None,
    existing: MergedDataset | None = None,
    logger: RunLogger | None = None,
    today: date | None = None,
) -> ImportResult:
    """
    Transform a batch of uploads in order and merge them with `existing`.

    Under the best_effort policy failed files are reported and skipped; under
    the atomic policy any failure raises BatchImportError and nothing is merged.
    Existing data is merged first, so previously imported posts win dedupe.
    """
    cfg = config or AppConfig()
    options = transform_options(cfg, today=today)
    policy = cfg.imports.batch_policy
    batch_id = uuid.uuid4().hex

    if logger is not None:
        logger.set_batch_id(batch_id)
        logger.info(
            "import_batch_started",
            batch_policy=policy,
            config_hash=config_sha256(cfg),
            alias_table_version=ALIAS_TABLE_VERSION,
        )

    imported: list[FileTransform] = []
    failures: list[FileImportFailure] = []

    for raw in uploads:
        upload = coerce_upload(raw)
        if logger is not None:
            logger.info("file_import_started", file=upload.name, chars=len(upload.content))

        try:
            transform = transform_file(upload.name, upload.content, options=options)
        except IngestError as e:
            failure = FileImportFailure(name=upload.name, code=e.code, message=str(e))
            failures.append(failure)
            if logger is not None:
                logger.warning("file_import_failed", file=upload.name, code=e.code, message=str(e))
            continue

        imported.append(transform)
        if logger is not None:
            logger.info(
                "file_import_completed",
                file=upload.name,
                record_type=transform.record_type.value,
                rows=row_count(transform),
            )

    if failures and policy == "atomic":
        if logger is not None:
            logger.error(
                "import_batch_rejected",
                failed=[f.name for f in failures],
                imported=len(imported),
            )
        names = ", ".join(f.name for f in failures)
        raise BatchImportError(f"Import rejected; failed files: {names}", failures, batch_id=batch_id)

    base = existing if existing is not None else MergedDataset()
    if imported:
        dataset = merge_transforms(
            [*dataset_transforms(base), *imported],
            top_limit=options.top_posts_limit,
            fallback_day=options.fallback_day(),
            profile_followers=base.profile_followers,
            sources=[*base.sources, *(t.name for t in imported)],
        )
    else:
        dataset = base

    if logger is not None:
        logger.info(
            "import_batch_completed",
            imported=len(imported),
            failed=len(failures),
            sources=list(dataset.sources),
            total_posts=dataset.summary.total_posts,
            total_impressions=dataset.summary.total_impressions,
        )

    return ImportResult(
        batch_id=batch_id,
        dataset=dataset,
        imported=tuple(imported),
        failures=tuple(failures),
    )
