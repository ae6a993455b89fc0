from __future__ import annotations

from typing import Sequence


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class IngestError(RuntimeError):
    """Base class for failures that abort a single file's import."""

    code = "ingest_error"


class EmptyInputError(IngestError):
    """Raised when an uploaded file has fewer than two lines."""

    code = "empty_input"


class UnrecognizedSchemaError(IngestError):
    """Raised when a file's columns match none of the known export schemas."""

    code = "unrecognized_schema"


class MalformedSchemaError(IngestError):
    """Raised when a schema is recognized but no usable rows survive normalization."""

    code = "malformed_schema"


class InvalidTimeWindowError(RuntimeError):
    """Raised when a time window value is not one of the supported windows."""


class BatchImportError(RuntimeError):
    """Raised by atomic batch imports when any file in the batch fails."""

    def __init__(self, message: str, failures: Sequence[object], *, batch_id: str = "") -> None:
        super().__init__(message)
        self.failures = tuple(failures)
        self.batch_id = batch_id


class StorageError(RuntimeError):
    """Raised when reading or writing state in SQLite fails."""


class ExportError(RuntimeError):
    """Raised when writing a workbook export fails."""
