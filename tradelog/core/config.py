"""
Type-safe configuration loaded from .env and telemetry.yaml.

Two layers:
- Settings: process-level options from the environment (log level, log root,
  path to the telemetry YAML file).
- TelemetryConfig: immutable pipeline options (channel directories, sampling
  intervals, retention, rotation, metric mode), merged from defaults and caller
  overrides once, at construction time.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import Category, LogLevel

logger = structlog.get_logger()


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    current = Path(__file__).resolve().parent
    while current != current.parent:
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()

DEFAULT_DIRS: dict[Category, str] = {
    Category.PNL: "pnl",
    Category.TRADE: "trades",
    Category.POSITION: "positions",
    Category.BALANCE: "balances",
    Category.RISK: "risk",
    Category.SYSTEM: "system",
    Category.METRIC: "metrics",
}

DEFAULT_METRIC_LABELS: dict[str, str] = {
    "app": "tradelog",
    "env": "production",
}

# Keys whose values are mappings merged key-by-key rather than replaced
_NESTED_KEYS = ("dirs", "metric_labels")


class Settings(BaseSettings):
    """Process configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging (application diagnostics, not the telemetry channels)
    log_level: str = "INFO"

    # Telemetry channel root; overrides log_dir from the YAML file when set
    log_dir: str = ""

    # Path to telemetry.yaml, relative to the project root unless absolute
    telemetry_config: str = "config/telemetry.yaml"

    # Static labels stamped on every channel entry
    app_name: str = "tradelog"
    app_env: str = "production"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"log_level must be a standard level name, got '{v}'")
        return upper

    @property
    def telemetry_config_path(self) -> Path:
        path = Path(self.telemetry_config)
        if path.is_absolute():
            return path
        return PROJECT_ROOT / path


class TelemetryConfig(BaseModel):
    """Immutable options for the sampling/recording/rotation pipeline.

    Intervals are in milliseconds. A retention window of 0 days disables
    purging entirely; it is never treated as "purge everything".
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    log_dir: Path = Path("./logs")
    dirs: dict[Category, str] = Field(default_factory=lambda: dict(DEFAULT_DIRS))
    file_extension: str = ".log"

    pnl_interval_ms: int = Field(default=600_000, gt=0)
    position_interval_ms: int = Field(default=5_000, gt=0)
    balance_interval_ms: int = Field(default=60_000, gt=0)
    rotation_check_interval_ms: int = Field(default=60_000, gt=0)

    max_retention_days: int = Field(default=30, ge=0)
    dashboard_metrics: bool = True
    rotate_by_date: bool = True

    level: LogLevel = LogLevel.INFO
    timestamp_format: Literal["iso", "epoch", "unix"] = "iso"
    metric_labels: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_METRIC_LABELS))

    @field_validator("dirs")
    @classmethod
    def fill_missing_dirs(cls, v: dict[Category, str]) -> dict[Category, str]:
        merged = {**DEFAULT_DIRS, **v}
        for category, name in merged.items():
            if not name or Path(name).is_absolute() or ".." in Path(name).parts:
                raise ValueError(f"dirs[{category.value}] must be a relative subdirectory, got '{name}'")
        return merged

    @field_validator("file_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if v and not v.startswith("."):
            return f".{v}"
        return v

    @property
    def purge_enabled(self) -> bool:
        return self.max_retention_days > 0

    def interval_seconds(self, name: str) -> float:
        """Interval for one periodic activity (pnl, position, balance, rotation)."""
        field_name = "rotation_check_interval_ms" if name == "rotation" else f"{name}_interval_ms"
        return getattr(self, field_name) / 1000.0

    def subdir(self, category: Category) -> Path:
        return self.log_dir / self.dirs[category]

    @classmethod
    def merged(cls, base: TelemetryConfig | dict[str, Any] | None = None, **overrides: Any) -> TelemetryConfig:
        """Build a config from defaults, an optional base and caller overrides.

        Nested mappings (dirs, metric_labels) are merged key-by-key so a caller
        can rename one directory without restating the others.
        """
        if isinstance(base, TelemetryConfig):
            data: dict[str, Any] = base.model_dump()
        else:
            data = dict(base or {})

        for key, value in overrides.items():
            if key in _NESTED_KEYS and isinstance(value, dict):
                current = dict(data.get(key) or {})
                current.update(value)
                data[key] = current
            else:
                data[key] = value
        return cls.model_validate(data)


def load_settings() -> Settings:
    """Load settings from environment / .env file."""
    return Settings()


def load_telemetry_config(path: Path | None = None, **overrides: Any) -> TelemetryConfig:
    """Load the telemetry section of a YAML file and apply overrides.

    No path, or an empty file, yields the defaults. A path that does not exist
    raises FileNotFoundError.
    """
    raw: Any = None
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Telemetry config not found: {path}")
        with open(path) as f:
            raw = yaml.safe_load(f)

    # safe_load returns None for empty files
    data: dict[str, Any] = raw if isinstance(raw, dict) else {}
    section = data.get("telemetry", data)
    if not isinstance(section, dict):
        section = {}

    if path is not None and not section:
        logger.warning(
            "telemetry_config_empty",
            path=str(path),
            msg="Telemetry config file is empty or invalid, using defaults",
        )

    return TelemetryConfig.merged(section, **overrides)


def config_from_settings(settings: Settings, path: Path | None = None) -> TelemetryConfig:
    """Resolve the pipeline config for a process from its Settings."""
    config_path = path or settings.telemetry_config_path
    overrides: dict[str, Any] = {
        "metric_labels": {"app": settings.app_name, "env": settings.app_env},
    }
    if settings.log_dir:
        overrides["log_dir"] = Path(settings.log_dir)

    if config_path.exists():
        return load_telemetry_config(config_path, **overrides)
    logger.info("telemetry_config_defaults", path=str(config_path))
    return load_telemetry_config(None, **overrides)
