from __future__ import annotations

from .analytics import TimeWindow, build_view
from .config import load_config, load_config_or_default
from .config_schema import AppConfig
from .errors import BatchImportError, ConfigError, IngestError, InvalidTimeWindowError
from .importer import ImportResult, Upload, import_uploads
from .records import MergedDataset, RecordType

__all__ = [
    "AppConfig",
    "BatchImportError",
    "ConfigError",
    "ImportResult",
    "IngestError",
    "InvalidTimeWindowError",
    "MergedDataset",
    "RecordType",
    "TimeWindow",
    "Upload",
    "build_view",
    "import_uploads",
    "load_config",
    "load_config_or_default",
]
