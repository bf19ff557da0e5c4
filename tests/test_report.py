from __future__ import annotations

import json
from pathlib import Path

import pytest

from contract.models import Granularity, ReportStatus
from engine.pipeline import plan_text
from report.builder import ReportBuilder
from report.write import dumps_plan, dumps_report, write_report

TEXT = (
    "let(:user) { create(:user) }\n"
    "let(:post) { create(:post) }\n"
    "it { post.reload }\n"
)


def _report(status: ReportStatus = ReportStatus.CLEAN):
    plan = plan_text(TEXT, granularity=Granularity.UNIT)
    builder = ReportBuilder(plan.sites, plan.granularity, plan.granularity_source)
    builder.add_decisions(reversed(plan.decisions))
    builder.add_note("info", "example", "an example note")
    builder.set_outcome(status)
    return plan, builder.build()


def test_decisions_follow_site_order() -> None:
    plan, report = _report()

    assert [d.call_site_id for d in report.decisions] == [s.id for s in plan.sites]
    assert report.proposed_count == 1
    assert report.applied_count == 0
    assert report.granularity_source == "explicit"


def test_builder_requires_a_decision_per_site() -> None:
    plan = plan_text(TEXT, granularity=Granularity.UNIT)
    builder = ReportBuilder(plan.sites, plan.granularity, plan.granularity_source)
    builder.add_decisions(plan.decisions[:1])

    with pytest.raises(ValueError, match="missing decisions"):
        builder.build()


def test_builder_rejects_unknown_sites() -> None:
    plan = plan_text(TEXT, granularity=Granularity.UNIT)
    builder = ReportBuilder(plan.sites[:1], plan.granularity, plan.granularity_source)

    with pytest.raises(ValueError, match="unknown call site"):
        builder.add_decisions(plan.decisions)


def test_report_json_is_deterministic(tmp_path: Path) -> None:
    _, report = _report(ReportStatus.REVERTED)

    payload = json.loads(dumps_report(report))

    assert dumps_report(report) == dumps_report(report)
    assert list(payload) == sorted(payload)
    assert payload["schema_version"] == 1
    assert payload["status"] == "reverted"
    assert payload["granularity"] == "unit"
    assert payload["decisions"][0]["to_variant"] == "build_stubbed"
    assert payload["notes"] == [
        {"code": "example", "level": "info", "message": "an example note"}
    ]

    path = tmp_path / "reports" / "user_spec.report.json"
    write_report(path, report)
    assert json.loads(path.read_text(encoding="utf-8")) == payload


def test_plan_json_omits_candidate_text() -> None:
    payload = json.loads(dumps_plan(plan_text(TEXT, granularity="unit")))

    assert "candidate_text" not in payload
    assert payload["proposed_count"] == 1
    assert len(payload["sites"]) == len(payload["decisions"]) == 2
