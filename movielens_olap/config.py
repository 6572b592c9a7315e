"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``        committed static defaults
  2. ``config/local.toml``          optional local overrides (gitignored)
  3. ``.env``                       local overrides (gitignored)
  4. Environment variables          ``MOVIELENS_OLAP_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The CLI, the report stage and the loaders all receive an ``AppConfig``
instance, never raw dicts or individual env var lookups scattered through
the codebase.

Dataset presets
---------------
The three supported MovieLens layouts are described by ``DatasetConfig``
presets (``DATASET_PRESETS``).  A preset fixes the file names, the on-disk
format, the text encoding, the genre vocabulary and whether rater metadata
exists.  ``[dataset] active`` selects one; ``[dataset.overrides]`` may
replace individual preset fields.
"""

from __future__ import annotations

import os
import tomllib
from enum import StrEnum
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Dataset presets ───────────────────────────────────────────────────────────


class DatasetFormat(StrEnum):
    """On-disk layout of a MovieLens release."""

    PIPE = "pipe"
    """``ml-100k``: ``u.item`` / ``u.user`` pipe-delimited, ``u.data`` tab-delimited."""

    DOUBLE_COLON = "double_colon"
    """``ml-10m``: ``movies.dat`` / ``ratings.dat`` with ``::`` separators."""

    CSV = "csv"
    """``ml-25m``: ``movies.csv`` / ``ratings.csv`` with a header row."""


ML_100K_GENRES: list[str] = [
    "unknown", "Action", "Adventure", "Animation", "Children's", "Comedy",
    "Crime", "Documentary", "Drama", "Fantasy", "Film-Noir", "Horror",
    "Musical", "Mystery", "Romance", "Sci-Fi", "Thriller", "War", "Western",
]

ML_10M_GENRES: list[str] = [
    "Action", "Adventure", "Animation", "Children", "Comedy", "Crime",
    "Documentary", "Drama", "Fantasy", "Film-Noir", "Horror", "IMAX",
    "Musical", "Mystery", "Romance", "Sci-Fi", "Thriller", "War", "Western",
]

ML_25M_GENRES: list[str] = ML_10M_GENRES + ["(no genres listed)"]


class DatasetConfig(BaseModel):
    """Describes one dataset layout.

    Attributes:
        name: Preset name, e.g. ``"ml-100k"``.
        format: On-disk layout, selects the loader.
        items_file: Item (movie) file name inside the data directory.
        ratings_file: Rating file name inside the data directory.
        raters_file: Rater (user) file name, or ``None`` when the release
            ships no rater metadata.
        raters_required: Missing ``raters_file`` is fatal when ``True`` and
            silently tolerated (empty rater table) when ``False``.
        has_rater_metadata: Report gender / age strata even before any rater
            is loaded.  Without it they are reported only when an optional
            ``raters_file`` was present and loaded.
        encoding: Text encoding of the data files.
        genre_labels: Full genre vocabulary of the release.  For the pipe
            layout the order matches the 0/1 flag columns of ``u.item``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    format: DatasetFormat
    items_file: str
    ratings_file: str
    raters_file: Optional[str] = None
    raters_required: bool = False
    has_rater_metadata: bool = False
    encoding: str = "utf-8"
    genre_labels: list[str]

    @model_validator(mode="after")
    def validate_rater_fields(self) -> "DatasetConfig":
        if self.raters_required and self.raters_file is None:
            raise ValueError(
                f"Dataset '{self.name}' requires raters but defines no raters_file."
            )
        return self


DATASET_PRESETS: dict[str, DatasetConfig] = {
    "ml-100k": DatasetConfig(
        name="ml-100k",
        format=DatasetFormat.PIPE,
        items_file="u.item",
        ratings_file="u.data",
        raters_file="u.user",
        raters_required=True,
        has_rater_metadata=True,
        encoding="latin-1",
        genre_labels=ML_100K_GENRES,
    ),
    "ml-10m": DatasetConfig(
        name="ml-10m",
        format=DatasetFormat.DOUBLE_COLON,
        items_file="movies.dat",
        ratings_file="ratings.dat",
        raters_file="users.dat",
        raters_required=False,
        has_rater_metadata=False,
        genre_labels=ML_10M_GENRES,
    ),
    "ml-25m": DatasetConfig(
        name="ml-25m",
        format=DatasetFormat.CSV,
        items_file="movies.csv",
        ratings_file="ratings.csv",
        has_rater_metadata=False,
        genre_labels=ML_25M_GENRES,
    ),
}


# ── Sub-config models ─────────────────────────────────────────────────────────


class DataConfig(BaseModel):
    """Filesystem paths for input data and generated reports."""

    model_config = ConfigDict(frozen=True)

    data_dir: str = "data"
    reports_dir: str = "reports"
    timing_log: str = "timings.txt"


class DatasetSelection(BaseModel):
    """Which dataset preset is active, plus optional per-field overrides."""

    model_config = ConfigDict(frozen=True)

    active: str = "ml-100k"
    overrides: dict[str, Any] = {}

    @field_validator("active")
    @classmethod
    def validate_active(cls, v: str) -> str:
        if v not in DATASET_PRESETS:
            raise ValueError(
                f"Unknown dataset '{v}'. Must be one of {sorted(DATASET_PRESETS)}."
            )
        return v

    def resolve(self) -> DatasetConfig:
        """Return the active preset with ``overrides`` applied."""
        preset = DATASET_PRESETS[self.active]
        if not self.overrides:
            return preset
        return DatasetConfig(**{**preset.model_dump(), **self.overrides})


class EngineConfig(BaseModel):
    """Aggregation and ranking parameters."""

    model_config = ConfigDict(frozen=True)

    top_n: int = 10
    min_votes: int = 5
    chunk_size: int = 10_000
    max_workers: Optional[int] = None   # None → os.cpu_count()
    executor: str = "thread"

    @field_validator("top_n", "min_votes")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Value must be >= 0, got {v}.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"chunk_size must be >= 1, got {v}.")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}.")
        return v

    @field_validator("executor")
    @classmethod
    def validate_executor(cls, v: str) -> str:
        valid = {"thread", "process"}
        if v.lower() not in valid:
            raise ValueError(f"executor must be one of {sorted(valid)}, got '{v}'.")
        return v.lower()


class AgeBand(BaseModel):
    """An inclusive age interval; ``max_age=None`` means open-ended."""

    model_config = ConfigDict(frozen=True)

    label: str
    min_age: int = 0
    max_age: Optional[int] = None

    @model_validator(mode="after")
    def validate_bounds(self) -> "AgeBand":
        if self.min_age < 0:
            raise ValueError(f"Age band '{self.label}': min_age must be >= 0.")
        if self.max_age is not None and self.max_age < self.min_age:
            raise ValueError(
                f"Age band '{self.label}': max_age {self.max_age} < min_age {self.min_age}."
            )
        return self

    def contains(self, age: int) -> bool:
        return age >= self.min_age and (self.max_age is None or age <= self.max_age)


DEFAULT_AGE_BANDS: list[AgeBand] = [
    AgeBand(label="LT18", min_age=0, max_age=17),
    AgeBand(label="18to30", min_age=18, max_age=30),
    AgeBand(label="GT30", min_age=31, max_age=None),
]


class StrataConfig(BaseModel):
    """Which strata receive their own report.

    ``age_bands`` must partition ``[0, ∞)``: sorted, contiguous, no overlap,
    starting at 0 and ending open-ended.  Every rater with a known age then
    lands in exactly one band.
    """

    model_config = ConfigDict(frozen=True)

    reportable_genres: list[str] = ["Action", "Drama", "Comedy", "Fantasy"]
    age_bands: list[AgeBand] = DEFAULT_AGE_BANDS

    @field_validator("age_bands")
    @classmethod
    def validate_partition(cls, v: list[AgeBand]) -> list[AgeBand]:
        if not v:
            raise ValueError("age_bands must contain at least one band.")
        bands = sorted(v, key=lambda b: b.min_age)
        if bands[0].min_age != 0:
            raise ValueError("age_bands must start at age 0.")
        for prev, nxt in zip(bands, bands[1:]):
            if prev.max_age is None or nxt.min_age != prev.max_age + 1:
                raise ValueError(
                    f"age_bands '{prev.label}' and '{nxt.label}' overlap or leave a gap."
                )
        if bands[-1].max_age is not None:
            raise ValueError("The last age band must be open-ended (max_age = None).")
        labels = [b.label for b in bands]
        if len(set(labels)) != len(labels):
            raise ValueError(f"age_bands labels must be unique, got {labels}.")
        return bands


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration; the single source of truth."""

    model_config = ConfigDict(frozen=True)

    data: DataConfig = DataConfig()
    dataset: DatasetSelection = DatasetSelection()
    engine: EngineConfig = EngineConfig()
    strata: StrataConfig = StrataConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False

    @property
    def active_dataset(self) -> DatasetConfig:
        return self.dataset.resolve()


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply MOVIELENS_OLAP_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply MOVIELENS_OLAP_* env vars to the raw config dict.

    Supported overrides:
      MOVIELENS_OLAP_DATA_DIR     → raw["data"]["data_dir"]
      MOVIELENS_OLAP_REPORTS_DIR  → raw["data"]["reports_dir"]
      MOVIELENS_OLAP_DATASET      → raw["dataset"]["active"]
      MOVIELENS_OLAP_LOG_LEVEL    → raw["logging"]["level"]
      MOVIELENS_OLAP_DEBUG        → raw["debug"]
    """
    if data_dir := os.environ.get("MOVIELENS_OLAP_DATA_DIR"):
        raw.setdefault("data", {})["data_dir"] = data_dir

    if reports_dir := os.environ.get("MOVIELENS_OLAP_REPORTS_DIR"):
        raw.setdefault("data", {})["reports_dir"] = reports_dir

    if dataset := os.environ.get("MOVIELENS_OLAP_DATASET"):
        raw.setdefault("dataset", {})["active"] = dataset

    if log_level := os.environ.get("MOVIELENS_OLAP_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("MOVIELENS_OLAP_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        data=DataConfig(**raw.get("data", {})),
        dataset=DatasetSelection(**raw.get("dataset", {})),
        engine=EngineConfig(**raw.get("engine", {})),
        strata=StrataConfig(**raw.get("strata", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
