"""Verification oracle for candidate spec files."""

from verify.oracle import OracleConfig, OracleResult, build_argv, run_oracle

__all__ = ["OracleConfig", "OracleResult", "build_argv", "run_oracle"]
