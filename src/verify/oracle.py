"""Bounded verification oracle.

Runs the project's test command against a candidate spec file with:
- a wall-clock timeout, after which the whole process group is killed
- bounded tail capture of the combined stdout/stderr

The oracle only answers pass or fail; anything other than a zero exit
status is a failure of the candidate.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from contract.errors import OracleUnavailableError
from contract.models import OracleOutcome, VerificationSummary

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

FILE_PLACEHOLDER = "{file}"


@dataclass(frozen=True)
class OracleConfig:
    command: Sequence[str]
    cwd: Path | None = None
    timeout_seconds: float = 600.0
    tail_lines: int = 50
    env: Mapping[str, str] | None = None


@dataclass(frozen=True)
class OracleResult:
    outcome: OracleOutcome
    returncode: int | None
    elapsed_seconds: float
    invocation: str
    last_output_lines: tuple[str, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        return self.outcome == "passed"

    def summary(self) -> VerificationSummary:
        return VerificationSummary(
            outcome=self.outcome,
            returncode=self.returncode,
            elapsed_seconds=round(self.elapsed_seconds, 3),
            last_output_lines=self.last_output_lines,
        )


def build_argv(command: Sequence[str], candidate_path: Path) -> list[str]:
    """Substitute the candidate path for ``{file}``, or append it when absent.

    >>> build_argv(["rspec", "{file}", "--fail-fast"], Path("a_spec.rb"))
    ['rspec', 'a_spec.rb', '--fail-fast']
    >>> build_argv(["rspec"], Path("a_spec.rb"))
    ['rspec', 'a_spec.rb']
    """
    path = str(candidate_path)
    if not any(FILE_PLACEHOLDER in part for part in command):
        return [*command, path]
    return [part.replace(FILE_PLACEHOLDER, path) for part in command]


def _format_invocation(argv: list[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def _kill_process_group(proc: subprocess.Popen[str]) -> None:
    """Best-effort kill of the process group."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except OSError:
        # Fall back to process-only kill.
        try:
            proc.kill()
        except OSError:
            return


def run_oracle(config: OracleConfig, candidate_path: Path) -> OracleResult:
    """Run the oracle once against ``candidate_path``.

    Raises:
        OracleUnavailableError: if the command cannot be started at all.
    """
    argv = build_argv(config.command, candidate_path)
    invocation = _format_invocation(argv)
    env = None
    if config.env is not None:
        env = {**os.environ, **config.env}

    logger.debug("oracle: %s", invocation)
    start = time.monotonic()
    tail: deque[str] = deque(maxlen=max(1, config.tail_lines))

    try:
        proc = subprocess.Popen(
            argv,
            cwd=config.cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
            start_new_session=True,  # enables killpg
        )
    except OSError as exc:
        msg = f"cannot start oracle `{invocation}`: {exc}"
        raise OracleUnavailableError(msg) from exc

    assert proc.stdout is not None  # for mypy
    stdout = proc.stdout

    def _read_output() -> None:
        for raw in stdout:
            tail.append(raw.rstrip("\n"))

    reader = threading.Thread(target=_read_output, name="oracle-reader", daemon=True)
    reader.start()

    timed_out = False
    try:
        proc.wait(timeout=config.timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_process_group(proc)
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("oracle pid %s did not exit after SIGKILL", proc.pid)

    # Best-effort join; don't block indefinitely.
    reader.join(timeout=1)
    elapsed = time.monotonic() - start
    rc = proc.returncode

    outcome: OracleOutcome
    if timed_out:
        outcome = "timeout"
    elif rc == 0:
        outcome = "passed"
    elif rc is not None and rc < 0:
        outcome = "crashed"
    else:
        outcome = "failed"

    logger.info(
        "oracle %s rc=%s elapsed_seconds=%.3f", outcome.upper(), rc, elapsed
    )
    return OracleResult(
        outcome=outcome,
        returncode=rc,
        elapsed_seconds=elapsed,
        invocation=invocation,
        last_output_lines=tuple(tail),
    )


__all__ = ["FILE_PLACEHOLDER", "OracleConfig", "OracleResult", "build_argv", "run_oracle"]
