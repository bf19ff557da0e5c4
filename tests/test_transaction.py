from __future__ import annotations

import os
from pathlib import Path

import pytest

from contract.errors import PatchConflictError, ScratchResourceError
from contract.models import Granularity, ReportStatus
from engine.pipeline import plan_text
from rewrite.transaction import TransactionalRewriter, scratch_prefix


def _plan(text: str):
    return plan_text(text, granularity=Granularity.UNIT)


def test_no_proposals_skips_the_oracle(unit_spec: str, missing_oracle) -> None:
    text = unit_spec + "# user.reload is below\nit { user.reload }\n"
    plan = _plan(text)

    outcome = TransactionalRewriter(missing_oracle).run(
        text, plan.sites, plan.decisions, file_name="user_spec.rb"
    )

    assert outcome.status is ReportStatus.CLEAN
    assert outcome.text == text
    assert not outcome.verification_attempted
    assert outcome.oracle_result is None


def test_commit_marks_every_proposal_applied(
    tmp_path: Path, unit_spec: str, make_oracle
) -> None:
    plan = _plan(unit_spec)
    oracle = make_oracle(
        "import pathlib, sys\n"
        "path = pathlib.Path(sys.argv[1])\n"
        "sys.exit(0 if path.name == 'user_spec.rb' else 4)\n"
    )
    scratch = tmp_path / "scratch"

    outcome = TransactionalRewriter(oracle, scratch).run(
        unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
    )

    assert outcome.status is ReportStatus.OPTIMIZED
    assert outcome.text == plan.candidate_text
    assert all(decision.applied for decision in outcome.decisions)
    assert outcome.oracle_result is not None
    assert outcome.oracle_result.passed
    assert list(scratch.iterdir()) == []


def test_failure_rolls_back_everything(
    tmp_path: Path, unit_spec: str, failing_oracle
) -> None:
    plan = _plan(unit_spec)
    scratch = tmp_path / "scratch"

    outcome = TransactionalRewriter(failing_oracle, scratch).run(
        unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
    )

    assert outcome.status is ReportStatus.REVERTED
    assert outcome.text == unit_spec
    assert not any(decision.applied for decision in outcome.decisions)
    assert [note.code for note in outcome.notes] == ["verification_failed"]
    assert outcome.oracle_result is not None
    assert outcome.oracle_result.last_output_lines == ("1 example, 1 failure",)
    assert list(scratch.iterdir()) == []


def test_failing_baseline_reverts(unit_spec: str, failing_oracle) -> None:
    plan = _plan(unit_spec)

    outcome = TransactionalRewriter(failing_oracle, verify_baseline=True).run(
        unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
    )

    assert outcome.status is ReportStatus.REVERTED
    assert outcome.text == unit_spec
    assert [note.code for note in outcome.notes] == ["baseline_failed"]


def test_passing_baseline_then_candidate(unit_spec: str, make_oracle) -> None:
    plan = _plan(unit_spec)
    # Passes the unmodified file, fails the stubbed candidate.
    oracle = make_oracle(
        "import pathlib, sys\n"
        "text = pathlib.Path(sys.argv[1]).read_text()\n"
        "sys.exit(1 if 'build_stubbed' in text else 0)\n"
    )

    outcome = TransactionalRewriter(oracle, verify_baseline=True).run(
        unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
    )

    assert outcome.status is ReportStatus.REVERTED
    assert [note.code for note in outcome.notes] == ["verification_failed"]


def test_unusable_scratch_root(tmp_path: Path, unit_spec: str, passing_oracle) -> None:
    plan = _plan(unit_spec)
    not_a_dir = tmp_path / "scratch"
    not_a_dir.write_text("", encoding="utf-8")

    with pytest.raises(ScratchResourceError):
        TransactionalRewriter(passing_oracle, not_a_dir).run(
            unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
        )


def test_conflicting_proposals_raise(
    monkeypatch: pytest.MonkeyPatch, unit_spec: str, passing_oracle
) -> None:
    plan = _plan(unit_spec)

    def _conflict(text, patches):
        raise PatchConflictError("overlap")

    monkeypatch.setattr("rewrite.transaction.apply_patches", _conflict)

    with pytest.raises(PatchConflictError):
        TransactionalRewriter(passing_oracle).run(
            unit_spec, plan.sites, plan.decisions, file_name="user_spec.rb"
        )


def test_scratch_prefix_is_unique_per_attempt() -> None:
    first = scratch_prefix("spec/models/user_spec.rb")

    assert first.startswith(f"factory-opt-user_spec-{os.getpid()}-")
    assert first != scratch_prefix("spec/models/user_spec.rb")
