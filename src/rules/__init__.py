"""Rule definitions for factory-opt: configuration, granularity and policy."""

from rules.config import (
    ConfigError,
    OptimizerConfig,
    OracleSettings,
    load_config,
    resolve_scratch_dir,
)
from rules.granularity import (
    GranularityResolution,
    infer_granularity,
    parse_granularity,
    resolve_granularity,
)
from rules.policy import choose_variant, decide

__all__ = [
    "ConfigError",
    "GranularityResolution",
    "OptimizerConfig",
    "OracleSettings",
    "choose_variant",
    "decide",
    "infer_granularity",
    "load_config",
    "parse_granularity",
    "resolve_granularity",
    "resolve_scratch_dir",
]
