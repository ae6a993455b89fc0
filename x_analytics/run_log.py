from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO


def _clip(text: str, limit: int) -> str:
    s = str(text or "")
    return s if len(s) <= limit else s[: max(0, limit - 1)] + "…"


def describe_exception(exc: BaseException) -> dict[str, str]:
    """Type, message and formatted traceback of `exc`, clipped for the log."""
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return {
        "type": type(exc).__name__,
        "message": _clip(str(exc), 2000),
        "traceback": _clip("".join(tb), 12000),
    }


class RunLogger:
    """
    Append-only JSONL event log for import batches and CLI commands.

    Every line carries ts, level, event and session_id. batch_id, file and
    data are added when present. Import code is single-threaded, so writes
    go straight to the open file.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = False,
        session_id: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._mode = "w" if overwrite else "a"
        self._fp: TextIO | None = None
        self.session_id = (session_id or "").strip() or uuid.uuid4().hex
        self.batch_id: str | None = None

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = False,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, session_id=session_id)
        logger._stream()
        return logger

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> "RunLogger":
        self._stream()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def close(self) -> None:
        if self._fp is None:
            return
        fp, self._fp = self._fp, None
        fp.close()

    def set_batch_id(self, batch_id: str | None) -> None:
        self.batch_id = (batch_id or "").strip() or None

    def info(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("INFO", event, file=file, **data)

    def warning(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("WARN", event, file=file, **data)

    def error(self, event: str, *, file: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, file=file, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        file: str | None = None,
        **data: Any,
    ) -> None:
        self.log("ERROR", event, file=file, error=describe_exception(exc), **data)

    def log(self, level: str, event: str, *, file: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self.session_id,
        }
        if self.batch_id:
            record["batch_id"] = self.batch_id
        if file and file.strip():
            record["file"] = file.strip()
        if data:
            record["data"] = data

        line = json.dumps(record, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
        fp = self._stream()
        fp.write(line + "\n")
        fp.flush()

    def _stream(self) -> TextIO:
        if self._fp is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = self._path.open(self._mode, encoding="utf-8", newline="\n")
            # A reopened logger continues the same file.
            self._mode = "a"
        return self._fp
