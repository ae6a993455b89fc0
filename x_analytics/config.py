from __future__ import annotations

import hashlib
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError
from .transform import TransformOptions


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def _describe_validation_error(err: ValidationError, path: Path) -> str:
    problems = [
        f"- {'.'.join(str(part) for part in item.get('loc', ())) or '<root>'}: "
        f"{item.get('msg', 'invalid value')}"
        for item in err.errors()
    ]
    return "\n".join([f"Invalid configuration in {path}:", *problems])


def load_config(path: str | Path) -> AppConfig:
    """
    Read a YAML file into an AppConfig.

    Every failure (missing file, bad YAML, invalid values) surfaces as a
    ConfigError that names the offending fields.
    """
    p = Path(path)
    data = _read_mapping(p)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e, p)) from e


def load_config_or_default(path: str | Path | None) -> AppConfig:
    if path is None or not str(path).strip():
        return AppConfig()
    return load_config(path)


def transform_options(config: AppConfig, *, today: date | None = None) -> TransformOptions:
    return TransformOptions(
        top_posts_limit=int(config.analytics.top_posts_limit),
        long_form_min_chars=int(config.imports.long_form_min_chars),
        today=today,
    )


def config_sha256(config: AppConfig) -> str:
    """Fingerprint of the effective config, recorded with each import batch."""
    return hashlib.sha256(config.model_dump_json().encode("utf-8")).hexdigest()
