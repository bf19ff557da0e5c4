"""All-or-nothing rewrite of one spec file, guarded by the verification oracle.

The candidate text is written to a private scratch directory under the
original file name and handed to the oracle. Either every proposed decision
is committed, or none is and the original text comes back unchanged.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from contract.errors import ScratchResourceError
from contract.models import OptimizationDecision, ReportNote, ReportStatus
from rewrite.patch import apply_patches, patches_for
from verify.oracle import OracleConfig, OracleResult, run_oracle

if TYPE_CHECKING:
    from collections.abc import Sequence

    from contract.models import ConstructionCallSite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionOutcome:
    status: ReportStatus
    text: str
    decisions: tuple[OptimizationDecision, ...]
    verification_attempted: bool = False
    oracle_result: OracleResult | None = None
    notes: tuple[ReportNote, ...] = field(default_factory=tuple)


def scratch_prefix(file_name: str) -> str:
    """Scratch directory prefix, unique per file, process and attempt."""
    stem = Path(file_name).stem or "spec"
    return f"factory-opt-{stem}-{os.getpid()}-{uuid.uuid4().hex[:8]}-"


def _write_candidate(path: Path, text: str) -> None:
    # newline="" keeps the file's own line endings.
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(text)


class TransactionalRewriter:
    """Apply proposals to a scratch copy and commit only if the oracle passes."""

    def __init__(
        self,
        oracle_config: OracleConfig,
        scratch_root: Path | None = None,
        *,
        verify_baseline: bool = False,
    ) -> None:
        self.oracle_config = oracle_config
        self.scratch_root = scratch_root
        self.verify_baseline = verify_baseline

    def run(
        self,
        text: str,
        sites: Sequence[ConstructionCallSite],
        decisions: Sequence[OptimizationDecision],
        *,
        file_name: str,
    ) -> TransactionOutcome:
        """Verify and commit (or roll back) the proposals for one file.

        Raises:
            PatchConflictError: if two proposals target overlapping ranges.
            ScratchResourceError: if the scratch candidate cannot be managed.
            OracleUnavailableError: if the oracle cannot be started.
        """
        proposals = [decision for decision in decisions if not decision.is_noop]
        if not proposals:
            return TransactionOutcome(
                status=ReportStatus.CLEAN,
                text=text,
                decisions=tuple(decisions),
            )

        candidate = apply_patches(text, patches_for({s.id: s for s in sites}, proposals))

        try:
            if self.scratch_root is not None:
                self.scratch_root.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(
                prefix=scratch_prefix(file_name), dir=self.scratch_root
            ) as temp_dir:
                candidate_path = Path(temp_dir) / Path(file_name).name
                return self._verify(text, candidate, candidate_path, decisions)
        except OSError as exc:
            msg = f"scratch candidate for {file_name} failed: {exc}"
            raise ScratchResourceError(msg) from exc

    def _verify(
        self,
        text: str,
        candidate: str,
        candidate_path: Path,
        decisions: Sequence[OptimizationDecision],
    ) -> TransactionOutcome:
        if self.verify_baseline:
            _write_candidate(candidate_path, text)
            baseline = run_oracle(self.oracle_config, candidate_path)
            if not baseline.passed:
                logger.warning(
                    "%s: baseline %s; oracle cannot judge the candidate",
                    candidate_path.name,
                    baseline.outcome,
                )
                return self._rollback(
                    text,
                    decisions,
                    baseline,
                    ReportNote(
                        level="warning",
                        code="baseline_failed",
                        message=(
                            f"Unmodified file did not pass the oracle ({baseline.outcome})"
                        ),
                    ),
                )

        _write_candidate(candidate_path, candidate)
        result = run_oracle(self.oracle_config, candidate_path)
        if not result.passed:
            logger.warning(
                "%s: verification %s; rolling back", candidate_path.name, result.outcome
            )
            return self._rollback(
                text,
                decisions,
                result,
                ReportNote(
                    level="warning",
                    code=f"verification_{result.outcome}",
                    message=f"Candidate did not pass the oracle ({result.outcome})",
                ),
            )

        applied = tuple(
            decision if decision.is_noop else decision.model_copy(update={"applied": True})
            for decision in decisions
        )
        logger.info(
            "%s: committed %d change(s)",
            candidate_path.name,
            sum(1 for decision in applied if decision.applied),
        )
        return TransactionOutcome(
            status=ReportStatus.OPTIMIZED,
            text=candidate,
            decisions=applied,
            verification_attempted=True,
            oracle_result=result,
        )

    @staticmethod
    def _rollback(
        text: str,
        decisions: Sequence[OptimizationDecision],
        result: OracleResult,
        note: ReportNote,
    ) -> TransactionOutcome:
        return TransactionOutcome(
            status=ReportStatus.REVERTED,
            text=text,
            decisions=tuple(decisions),
            verification_attempted=True,
            oracle_result=result,
            notes=(note,),
        )


__all__ = ["TransactionOutcome", "TransactionalRewriter", "scratch_prefix"]
