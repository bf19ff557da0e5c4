from __future__ import annotations

from pathlib import Path

import pytest

from contract.models import Granularity
from rules.config import (
    DEFAULT_ORACLE_COMMAND,
    ConfigError,
    load_config,
    resolve_scratch_dir,
)
from signals import DETECTOR_NAMES


def _write_config(repo_root: Path, toml_content: str) -> None:
    (repo_root / "factory-opt.toml").write_text(toml_content, encoding="utf-8")


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.default_granularity is Granularity.INTEGRATION
    assert config.detectors == list(DETECTOR_NAMES)
    assert config.verify_baseline is False
    assert config.scratch_dir is None
    assert config.oracle.command == DEFAULT_ORACLE_COMMAND
    assert config.oracle.timeout_seconds == 600
    assert config.oracle.tail_lines == 50


def test_valid_config_accepted(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
default_granularity = "unit"
detectors = ["persistence_accessor", "nested_construction"]
service_suffixes = ["Publisher"]
verify_baseline = true

[oracle]
command = ["bin/rspec", "{file}", "--fail-fast"]
timeout_seconds = 120
""".strip(),
    )

    config = load_config(tmp_path)

    assert config.default_granularity is Granularity.UNIT
    assert config.detectors == ["persistence_accessor", "nested_construction"]
    assert config.service_suffixes == ["Publisher"]
    assert config.verify_baseline is True
    assert config.oracle.command == ["bin/rspec", "{file}", "--fail-fast"]
    assert config.oracle.timeout_seconds == 120
    assert config.oracle.tail_lines == 50


@pytest.mark.parametrize(
    "toml_content",
    [
        "bogus_key = true",
        'default_granularity = "galactic"',
        'detectors = ["telepathy"]',
        'detectors = ["nested_construction", "nested_construction"]',
        "[oracle]\ncommand = []",
        "[oracle]\ntimeout_seconds = 0",
        "[oracle]\nshell = true",
        "this is not toml",
    ],
)
def test_invalid_config_rejected(tmp_path: Path, toml_content: str) -> None:
    _write_config(tmp_path, toml_content)

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unknown_detector_error_lists_valid_names(tmp_path: Path) -> None:
    _write_config(tmp_path, 'detectors = ["telepathy"]')

    with pytest.raises(ConfigError, match="query_dependency"):
        load_config(tmp_path)


def test_resolve_scratch_dir(tmp_path: Path) -> None:
    assert resolve_scratch_dir(tmp_path, None) is None
    assert resolve_scratch_dir(tmp_path, ".scratch") == (tmp_path / ".scratch").resolve()


@pytest.mark.parametrize("scratch_dir", ["", "../outside", "/tmp/abs", "~/scratch"])
def test_resolve_scratch_dir_rejects_escapes(tmp_path: Path, scratch_dir: str) -> None:
    with pytest.raises(ConfigError):
        resolve_scratch_dir(tmp_path, scratch_dir)
