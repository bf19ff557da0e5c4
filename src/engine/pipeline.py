"""End-to-end optimization of a single spec file.

Stages: resolve granularity, extract call sites, collect persistence
evidence, decide a variant per site, then verify and commit the proposals
as one transaction. Failures that stop a file from being verified are
reported as status ``error``; callers always get a report back.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from contract.errors import (
    OptimizerError,
    OracleUnavailableError,
    PatchConflictError,
    ScratchResourceError,
)
from contract.models import (
    ConstructionCallSite,
    OptimizationDecision,
    OptimizationPlan,
    OptimizationResult,
    ReportNote,
    ReportStatus,
)
from parse.factory_calls import extract_call_sites
from report.builder import ReportBuilder
from rewrite.patch import apply_patches, patches_for
from rewrite.transaction import TransactionalRewriter
from rules.config import OptimizerConfig
from rules.granularity import GranularityResolution, resolve_granularity
from rules.policy import decide
from signals import build_detectors, collect_evidence
from verify.oracle import OracleConfig

if TYPE_CHECKING:
    from contract.models import Granularity

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "candidate_spec.rb"

_ERROR_CODES: dict[type[OptimizerError], str] = {
    OracleUnavailableError: "oracle_unavailable",
    ScratchResourceError: "scratch_failure",
    PatchConflictError: "patch_conflict",
}


def oracle_config_from(
    config: OptimizerConfig,
    *,
    cwd: Path | None = None,
    command: list[str] | None = None,
    timeout_seconds: float | None = None,
) -> OracleConfig:
    """Build the oracle invocation from config, with optional overrides."""
    settings = config.oracle
    return OracleConfig(
        command=tuple(command or settings.command),
        cwd=cwd,
        timeout_seconds=timeout_seconds or settings.timeout_seconds,
        tail_lines=settings.tail_lines,
    )


def _analyze(
    text: str,
    granularity: str | Granularity | None,
    config: OptimizerConfig,
) -> tuple[
    GranularityResolution,
    list[ConstructionCallSite],
    list[OptimizationDecision],
    list[ReportNote],
]:
    resolution = resolve_granularity(
        text, granularity, default=config.default_granularity
    )
    sites = extract_call_sites(text)
    detectors = build_detectors(
        config.detectors,
        job_suffixes=config.job_suffixes,
        service_suffixes=config.service_suffixes,
    )

    decisions: list[OptimizationDecision] = []
    notes = list(resolution.notes)
    for site in sites:
        evidence = collect_evidence(site, text, detectors)
        logger.debug(
            "%s: evidence %s",
            site.id,
            ", ".join(item.signal_name for item in evidence if item.matched) or "none",
        )
        decisions.append(decide(site, resolution.granularity, evidence))
        if site.parse_error is not None:
            notes.append(
                ReportNote(
                    level="warning",
                    code="parse_error",
                    message=f"{site.id}: {site.parse_error}",
                )
            )
    return resolution, sites, decisions, notes


def plan_text(
    text: str,
    *,
    granularity: str | Granularity | None = None,
    config: OptimizerConfig | None = None,
) -> OptimizationPlan:
    """Decide every call site and build the candidate text, without verifying.

    Raises:
        PatchConflictError: if two proposals target overlapping ranges.
    """
    config = config or OptimizerConfig()
    resolution, sites, decisions, notes = _analyze(text, granularity, config)
    candidate = apply_patches(
        text, patches_for({site.id: site for site in sites}, decisions)
    )
    return OptimizationPlan(
        granularity=resolution.granularity,
        granularity_source=resolution.source,
        sites=tuple(sites),
        decisions=tuple(decisions),
        notes=tuple(notes),
        candidate_text=candidate,
    )


def optimize_text(
    text: str,
    *,
    granularity: str | Granularity | None = None,
    config: OptimizerConfig | None = None,
    oracle: OracleConfig | None = None,
    file_name: str = DEFAULT_FILE_NAME,
    scratch_root: Path | None = None,
) -> OptimizationResult:
    """Run the full pipeline over ``text``.

    The returned text equals the input for every status except ``optimized``.
    """
    config = config or OptimizerConfig()
    oracle = oracle or oracle_config_from(config)
    resolution, sites, decisions, notes = _analyze(text, granularity, config)

    builder = ReportBuilder(sites, resolution.granularity, resolution.source)
    builder.add_notes(notes)

    rewriter = TransactionalRewriter(
        oracle, scratch_root, verify_baseline=config.verify_baseline
    )
    try:
        outcome = rewriter.run(text, sites, decisions, file_name=file_name)
    except OptimizerError as exc:
        code = _ERROR_CODES.get(type(exc), "optimizer_error")
        logger.error("%s: %s", file_name, exc)
        builder.add_decisions(decisions)
        builder.add_note("error", code, str(exc))
        builder.set_outcome(
            ReportStatus.ERROR,
            verification_attempted=isinstance(exc, OracleUnavailableError),
        )
        return OptimizationResult(text=text, report=builder.build())

    builder.add_decisions(outcome.decisions)
    builder.add_notes(outcome.notes)
    builder.set_outcome(
        outcome.status,
        verification_attempted=outcome.verification_attempted,
        verification=outcome.oracle_result.summary() if outcome.oracle_result else None,
    )
    return OptimizationResult(text=outcome.text, report=builder.build())


def _atomic_write(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temp file in the same directory."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(text.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def optimize_file(
    path: Path,
    *,
    granularity: str | Granularity | None = None,
    config: OptimizerConfig | None = None,
    oracle: OracleConfig | None = None,
    scratch_root: Path | None = None,
) -> OptimizationResult:
    """Optimize the spec file at ``path`` in place.

    The file is only written when the candidate was verified; it is never
    left half-rewritten.

    Raises:
        OSError: if the file cannot be read.
        UnicodeDecodeError: if the file is not UTF-8.
    """
    path = Path(path)
    # Decoded from bytes so line endings survive unchanged.
    text = path.read_bytes().decode("utf-8")
    result = optimize_text(
        text,
        granularity=granularity,
        config=config,
        oracle=oracle,
        file_name=path.name,
        scratch_root=scratch_root,
    )
    if result.report.status is not ReportStatus.OPTIMIZED:
        return result

    try:
        _atomic_write(path, result.text)
    except OSError as exc:
        logger.error("%s: write-back failed: %s", path, exc)
        report = result.report
        decisions = tuple(
            decision.model_copy(update={"applied": False})
            for decision in report.decisions
        )
        note = ReportNote(
            level="error",
            code="write_failed",
            message=f"Verified candidate could not be written back: {exc}",
        )
        report = report.model_copy(
            update={
                "status": ReportStatus.ERROR,
                "decisions": decisions,
                "notes": (*report.notes, note),
            }
        )
        return OptimizationResult(text=text, report=report)

    logger.info("%s: written (%d change(s))", path, result.report.applied_count)
    return result


__all__ = [
    "DEFAULT_FILE_NAME",
    "oracle_config_from",
    "optimize_file",
    "optimize_text",
    "plan_text",
]
