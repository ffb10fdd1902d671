"""JSON configuration for hours analysis, validated with pydantic."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator

from git_density.infrastructure.hours_engine import (
    DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
    DEFAULT_MAX_COMMIT_DIFF_MINUTES,
)

DEFAULT_FILE_NAME = "configuration.json"


class HoursTypeConfiguration(BaseModel):
    """One pair of estimator thresholds, both in minutes."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_diff: NonNegativeInt = Field(alias="maxDiff")
    first_commit_add: NonNegativeInt = Field(alias="firstCommitAdd")


def _default_hours_types() -> list[HoursTypeConfiguration]:
    return [
        HoursTypeConfiguration(
            max_diff=DEFAULT_MAX_COMMIT_DIFF_MINUTES,
            first_commit_add=DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
        )
    ]


class Configuration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hours_types: list[HoursTypeConfiguration] = Field(
        default_factory=_default_hours_types, alias="hoursTypes", min_length=1,
    )
    db_path: str | None = Field(default=None, alias="dbPath")

    @field_validator("hours_types")
    @classmethod
    def _unique_hours_types(
        cls, value: list[HoursTypeConfiguration],
    ) -> list[HoursTypeConfiguration]:
        if len(set(value)) != len(value):
            raise ValueError("hoursTypes must not contain duplicate combinations")
        return value


def load_configuration(path: str | None = None) -> Configuration:
    """Load and validate a configuration file; defaults when *path* is None."""
    if path is None:
        return Configuration()
    config_path = Path(path)
    if not config_path.is_file():
        raise ValueError(f"Configuration file not found: {config_path}")
    return Configuration.model_validate_json(config_path.read_text(encoding="utf-8"))
