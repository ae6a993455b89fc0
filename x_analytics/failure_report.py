from __future__ import annotations

from typing import Any, Mapping, Sequence

from .importer import FileImportFailure

_RECOMMENDATIONS: dict[str, str] = {
    "empty_input": "Re-download the export; the file has no data rows.",
    "unrecognized_schema": (
        "Upload an account overview, post (content) or video export from the analytics page "
        "without editing its header row."
    ),
    "malformed_schema": (
        "Check that rows have readable dates, and that post exports include post text or metrics."
    ),
}

_REASONS: dict[str, str] = {
    "empty_input": "file is empty",
    "unrecognized_schema": "columns not recognized",
    "malformed_schema": "no usable rows",
}


def build_import_report(
    *,
    failures: Sequence[FileImportFailure],
    imported: int,
    batch_policy: str,
) -> dict[str, Any]:
    """
    Summarize which files failed to import and why.

    Previously imported data is never discarded by a failed file, so the
    report only concerns the current batch.
    """
    failed = len(failures)
    if not failed:
        status = "completed"
    elif batch_policy == "atomic":
        status = "rejected"
    elif imported:
        status = "partial"
    else:
        status = "failed"

    files = [
        {
            "name": f.name,
            "code": f.code,
            "reason": _REASONS.get(f.code, f.code),
            "message": f.message,
        }
        for f in failures
    ]

    if status == "completed":
        summary = f"Imported {imported} file(s)."
    elif status == "rejected":
        summary = (
            f"Batch rejected: {failed} file(s) failed and batch_policy=atomic; "
            "no files from this batch were merged."
        )
    elif status == "partial":
        summary = f"Imported {imported} file(s); {failed} file(s) failed."
    else:
        summary = f"No files imported; {failed} file(s) failed."

    recommendations: list[str] = []
    for code in dict.fromkeys(f.code for f in failures):
        rec = _RECOMMENDATIONS.get(code)
        if rec:
            recommendations.append(rec)

    return {
        "status": status,
        "summary": summary,
        "details": {
            "imported": int(imported),
            "failed": failed,
            "batch_policy": batch_policy,
            "files": files,
        },
        "recommendations": recommendations,
    }


def format_import_report(report: Mapping[str, Any]) -> str:
    status = str(report.get("status") or "").strip() or "unknown"
    summary = str(report.get("summary") or "").strip() or f"Import finished ({status})."

    lines: list[str] = [summary]

    details = report.get("details")
    files = details.get("files") if isinstance(details, Mapping) else None
    if isinstance(files, list):
        for f in files:
            if isinstance(f, Mapping):
                lines.append(f"- {f.get('name')}: {f.get('reason')} ({f.get('message')})")

    recs = report.get("recommendations")
    if isinstance(recs, list) and recs:
        lines.append("Recommendations:")
        for r in recs:
            t = str(r or "").strip()
            if t:
                lines.append(f"- {t}")

    return "\n".join(lines)
