"""Single-file optimization pipeline."""

from engine.pipeline import optimize_file, optimize_text, oracle_config_from, plan_text

__all__ = ["optimize_file", "optimize_text", "oracle_config_from", "plan_text"]
