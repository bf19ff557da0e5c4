from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contract.models import Granularity
from signals import DETECTOR_NAMES

CONFIG_FILENAME = "factory-opt.toml"

DEFAULT_ORACLE_COMMAND = ["bundle", "exec", "rspec", "{file}"]


class OracleSettings(BaseModel):
    """How to run the verification oracle for a candidate spec file."""

    model_config = ConfigDict(extra="forbid")

    command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ORACLE_COMMAND),
        description="Oracle argv; '{file}' is replaced by the candidate path",
    )
    timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Wall-clock budget for one oracle run",
    )
    tail_lines: int = Field(
        default=50,
        ge=1,
        description="Number of trailing output lines kept in the report",
    )

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: list[str]) -> list[str]:
        if not v or not v[0].strip():
            msg = "oracle.command must be a non-empty argv list"
            raise ValueError(msg)
        return v


class OptimizerConfig(BaseModel):
    """Configuration for factory-opt runs."""

    model_config = ConfigDict(extra="forbid")

    default_granularity: Granularity = Field(
        default=Granularity.INTEGRATION,
        description=(
            "Granularity used when neither an explicit value nor a textual cue "
            "resolves one"
        ),
    )
    detectors: list[str] = Field(
        default_factory=lambda: list(DETECTOR_NAMES),
        description="Persistence detectors to run, in order",
    )
    job_suffixes: list[str] = Field(
        default_factory=list,
        description="Extra class-name suffixes treated as async job dispatch",
    )
    service_suffixes: list[str] = Field(
        default_factory=list,
        description="Extra class-name suffixes treated as service-call boundaries",
    )
    verify_baseline: bool = Field(
        default=False,
        description="Run the oracle on the unmodified file before the candidate",
    )
    scratch_dir: str | None = Field(
        default=None,
        description="Relative directory for scratch candidates (default: system temp)",
    )
    oracle: OracleSettings = Field(
        default_factory=OracleSettings,
        description="Verification oracle invocation",
    )

    @field_validator("detectors", mode="before")
    @classmethod
    def validate_detectors(cls, v: Any) -> Any:
        """Reject unknown detector names with the list of valid ones.

        Note: this runs in `mode="before"` so the error names the raw TOML
        value.
        """
        if v is None:
            return list(DETECTOR_NAMES)

        if not isinstance(v, list) or not all(isinstance(name, str) for name in v):
            msg = "detectors must be a list of detector names"
            raise ValueError(msg)

        for name in v:
            if name not in DETECTOR_NAMES:
                msg = (
                    f"Invalid detector '{name}'. "
                    f"Valid detectors: {', '.join(DETECTOR_NAMES)}"
                )
                raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = "detectors must not repeat a detector name"
            raise ValueError(msg)

        return v


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_scratch_dir(root: Path, scratch_dir: str | None) -> Path | None:
    """Resolve a config-provided scratch_dir safely within the repo root.

    ``None`` means the system temporary directory. Otherwise the value must
    be a non-empty relative path that stays within the repository root after
    resolution; absolute paths and paths that escape the root are rejected.
    """
    if scratch_dir is None:
        return None

    if not scratch_dir or scratch_dir.startswith("~"):
        msg = "scratch_dir must be a non-empty relative path within the repo root"
        raise ConfigError(msg)

    scratch_path = Path(scratch_dir)
    if scratch_path.is_absolute():
        msg = "scratch_dir must be a relative path within the repo root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_scratch = (resolved_root / scratch_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve scratch_dir '{scratch_dir}': {exc}"
        raise ConfigError(msg) from exc

    try:
        resolved_scratch.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"scratch_dir '{scratch_dir}' escapes the repository root"
        raise ConfigError(msg) from exc

    return resolved_scratch


def load_config(root: Path) -> OptimizerConfig:
    """Load configuration from factory-opt.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return OptimizerConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return OptimizerConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e
