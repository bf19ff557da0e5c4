"""Command-line interface for factory-opt."""

from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from contract.errors import PatchConflictError
from contract.models import OptimizationResult, ReportStatus
from engine.pipeline import optimize_file, oracle_config_from, plan_text
from report.write import dumps_plan, write_report
from rules.config import ConfigError, OptimizerConfig, load_config, resolve_scratch_dir
from rules.granularity import GRANULARITY_ALIASES
from verify.oracle import OracleConfig

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--granularity",
        choices=sorted(GRANULARITY_ALIASES),
        default=None,
        help="Granularity of the spec file(s) (default: inferred from the text)",
    )
    parser.add_argument(
        "--root",
        default=".",
        help="Project root holding factory-opt.toml; the oracle runs here (default: .)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="factory-opt")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze", help="Print proposed decisions without running the oracle"
    )
    analyze_parser.add_argument("file", help="Spec file to analyze")
    _add_common_options(analyze_parser)

    optimize_parser = subparsers.add_parser(
        "optimize",
        help="Rewrite spec files in place when the oracle passes",
        epilog="Arguments after '--' replace the configured oracle command.",
    )
    optimize_parser.add_argument("files", nargs="+", help="Spec files to optimize")
    _add_common_options(optimize_parser)
    optimize_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Oracle wall-clock timeout in seconds (default: config)",
    )
    optimize_parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of files optimized concurrently (default: 1)",
    )
    optimize_parser.add_argument(
        "--report-dir",
        default=None,
        help="Directory for per-file report JSON, named after the path under --root "
        "(default: none written)",
    )

    return parser


def _split_oracle_command(argv: list[str]) -> tuple[list[str], list[str] | None]:
    if "--" not in argv:
        return argv, None
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def _report_name(root: Path, path: Path) -> str:
    """Name a file's report after its path under ``root``.

    ``spec/models/user_spec.rb`` becomes ``spec__models__user_spec.report.json``.
    Files outside ``root`` use their absolute path without the anchor.
    """
    resolved = path.expanduser().resolve()
    try:
        parts = resolved.relative_to(root).with_suffix("").parts
    except ValueError:
        parts = resolved.with_suffix("").parts[1:]
    return "__".join(parts) + ".report.json"


def _handle_analyze(root: Path, file: str, granularity: str | None) -> int:
    config = load_config(root)
    path = Path(file)
    try:
        text = path.read_bytes().decode("utf-8")
        plan = plan_text(text, granularity=granularity, config=config)
    except (OSError, UnicodeDecodeError, PatchConflictError) as exc:
        sys.stderr.write(f"error: {path}: {exc}\n")
        return 2
    sys.stdout.write(dumps_plan(plan).decode("utf-8") + "\n")
    return 0


def _optimize_one(
    path: Path,
    *,
    granularity: str | None,
    config: OptimizerConfig,
    oracle: OracleConfig,
    scratch_root: Path | None,
) -> OptimizationResult | Exception:
    try:
        return optimize_file(
            path,
            granularity=granularity,
            config=config,
            oracle=oracle,
            scratch_root=scratch_root,
        )
    except (OSError, UnicodeDecodeError) as exc:
        return exc


def _handle_optimize(
    root: Path,
    files: list[str],
    *,
    granularity: str | None,
    timeout: float | None,
    jobs: int,
    report_dir: str | None,
    oracle_command: list[str] | None,
) -> int:
    if jobs < 1:
        msg = "--jobs must be at least 1"
        raise ConfigError(msg)
    if oracle_command is not None and not oracle_command:
        msg = "empty oracle command after '--'"
        raise ConfigError(msg)
    if timeout is not None and timeout <= 0:
        msg = "--timeout must be positive"
        raise ConfigError(msg)

    config = load_config(root)
    scratch_root = resolve_scratch_dir(root, config.scratch_dir)
    oracle = oracle_config_from(
        config, cwd=root, command=oracle_command, timeout_seconds=timeout
    )
    paths = [Path(file) for file in files]

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        results = list(
            executor.map(
                lambda path: _optimize_one(
                    path,
                    granularity=granularity,
                    config=config,
                    oracle=oracle,
                    scratch_root=scratch_root,
                ),
                paths,
            )
        )

    exit_code = 0
    for path, result in zip(paths, results):
        if isinstance(result, Exception):
            sys.stderr.write(f"error: {path}: {result}\n")
            exit_code = 2
            continue

        report = result.report
        line = (
            f"{path}: {report.status.value} "
            f"({report.applied_count}/{report.proposed_count} applied, "
            f"granularity={report.granularity.value})"
        )
        if report.status is ReportStatus.ERROR:
            sys.stderr.write(f"error: {line}\n")
            for note in report.notes:
                if note.level == "error":
                    sys.stderr.write(f"  {note.code}: {note.message}\n")
            exit_code = 2
        elif report.status is ReportStatus.REVERTED:
            sys.stderr.write(f"warning: {line}\n")
        else:
            sys.stderr.write(f"{line}\n")

        if report_dir is not None:
            write_report(Path(report_dir) / _report_name(root, path), report)

    return exit_code


def main(argv: list[str] | None = None) -> int:
    raw = list(sys.argv[1:] if argv is None else argv)
    raw, oracle_command = _split_oracle_command(raw)

    parser = _build_parser()
    args = parser.parse_args(raw)
    if oracle_command is not None and args.command != "optimize":
        parser.error("an oracle command after '--' is only accepted by optimize")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )

    root = Path(args.root).expanduser().resolve()

    try:
        if args.command == "analyze":
            return _handle_analyze(root, args.file, args.granularity)

        if args.command == "optimize":
            return _handle_optimize(
                root,
                args.files,
                granularity=args.granularity,
                timeout=args.timeout,
                jobs=args.jobs,
                report_dir=args.report_dir,
                oracle_command=oracle_command,
            )
    except ConfigError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
