from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_STORAGE_KEY_RE = re.compile(r"^[A-Za-z0-9_.:-]+$")

PositiveInt = Annotated[int, Field(ge=1)]

BatchPolicy = Literal["best_effort", "atomic"]
WindowName = Literal["7d", "30d", "90d", "all"]


class ImportsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # best_effort keeps files that parsed; atomic rejects the batch on any failure.
    batch_policy: BatchPolicy = "best_effort"
    long_form_min_chars: PositiveInt = 200


class AnalyticsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_window: WindowName = "30d"
    top_posts_limit: PositiveInt = 10
    summary_posts_limit: PositiveInt = 5

    @model_validator(mode="after")
    def _summary_within_top(self) -> "AnalyticsConfig":
        if self.summary_posts_limit > self.top_posts_limit:
            raise ValueError("summary_posts_limit must be <= top_posts_limit")
        return self


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    database: str = "state.sqlite"
    dataset_key: str = "x_analytics.dataset"

    @field_validator("dataset_key")
    @classmethod
    def _key_must_be_simple(cls, v: str) -> str:
        key = (v or "").strip()
        if not _STORAGE_KEY_RE.fullmatch(key):
            raise ValueError("must contain only letters, digits, '_', '.', ':' or '-'")
        return key

    @field_validator("database")
    @classmethod
    def _database_must_be_set(cls, v: str) -> str:
        name = (v or "").strip()
        if not name:
            raise ValueError("must be a non-empty path")
        return name


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    imports: ImportsConfig = Field(default_factory=ImportsConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
