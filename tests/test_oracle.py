from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from contract.errors import OracleUnavailableError
from verify.oracle import OracleConfig, build_argv, run_oracle

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="oracle runs in a POSIX process group"
)


def test_build_argv_substitutes_or_appends(tmp_path: Path) -> None:
    candidate = tmp_path / "user_spec.rb"

    assert build_argv(["rspec", "{file}", "--fail-fast"], candidate) == [
        "rspec",
        str(candidate),
        "--fail-fast",
    ]
    assert build_argv(["rspec", "--pattern={file}"], candidate) == [
        "rspec",
        f"--pattern={candidate}",
    ]
    assert build_argv(["rspec"], candidate) == ["rspec", str(candidate)]


def test_passing_oracle_sees_candidate(tmp_path: Path, make_oracle) -> None:
    candidate = tmp_path / "user_spec.rb"
    candidate.write_text("build_stubbed(:user)\n", encoding="utf-8")
    oracle = make_oracle(
        "import pathlib, sys\n"
        "text = pathlib.Path(sys.argv[1]).read_text()\n"
        "print('checked', pathlib.Path(sys.argv[1]).name)\n"
        "sys.exit(0 if 'build_stubbed' in text else 1)\n"
    )

    result = run_oracle(oracle, candidate)

    assert result.outcome == "passed"
    assert result.passed
    assert result.returncode == 0
    assert result.last_output_lines == ("checked user_spec.rb",)


def test_failing_oracle_keeps_bounded_tail(tmp_path: Path) -> None:
    oracle = OracleConfig(
        command=(
            sys.executable,
            "-c",
            "import sys\nfor i in range(100): print('line', i)\nsys.exit(3)",
        ),
        tail_lines=5,
    )

    result = run_oracle(oracle, tmp_path / "user_spec.rb")

    assert result.outcome == "failed"
    assert result.returncode == 3
    assert result.last_output_lines == tuple(f"line {i}" for i in range(95, 100))
    assert result.summary().outcome == "failed"


def test_timeout_kills_the_oracle(tmp_path: Path, make_oracle) -> None:
    oracle = make_oracle("import time; time.sleep(60)", timeout_seconds=0.5)

    start = time.monotonic()
    result = run_oracle(oracle, tmp_path / "user_spec.rb")

    assert result.outcome == "timeout"
    assert not result.passed
    assert time.monotonic() - start < 30


def test_signal_termination_is_a_crash(tmp_path: Path, make_oracle) -> None:
    oracle = make_oracle("import os, signal; os.kill(os.getpid(), signal.SIGKILL)")

    result = run_oracle(oracle, tmp_path / "user_spec.rb")

    assert result.outcome == "crashed"
    assert result.returncode is not None
    assert result.returncode < 0


def test_env_and_cwd_are_applied(tmp_path: Path) -> None:
    oracle = OracleConfig(
        command=(
            sys.executable,
            "-c",
            "import os, sys\n"
            "ok = os.environ.get('FACTORY_OPT_MARK') == '1' and os.path.isfile('Gemfile')\n"
            "sys.exit(0 if ok else 1)",
        ),
        cwd=tmp_path,
        env={"FACTORY_OPT_MARK": "1"},
    )
    (tmp_path / "Gemfile").write_text("", encoding="utf-8")

    assert run_oracle(oracle, tmp_path / "user_spec.rb").passed


def test_missing_command_is_unavailable(tmp_path: Path, missing_oracle) -> None:
    with pytest.raises(OracleUnavailableError, match="cannot start oracle"):
        run_oracle(missing_oracle, tmp_path / "user_spec.rb")
