"""Serialize reports and plans as deterministic JSON."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from pathlib import Path

    from contract.models import OptimizationPlan, OptimizationReport

_JSON_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2


def report_to_dict(report: OptimizationReport) -> dict[str, Any]:
    payload = report.model_dump(mode="json")
    payload["applied_count"] = report.applied_count
    payload["proposed_count"] = report.proposed_count
    return payload


def plan_to_dict(plan: OptimizationPlan) -> dict[str, Any]:
    """Plan summary for ``analyze``; the candidate text itself is left out."""
    return {
        "granularity": plan.granularity.value,
        "granularity_source": plan.granularity_source,
        "sites": [site.model_dump(mode="json") for site in plan.sites],
        "decisions": [decision.model_dump(mode="json") for decision in plan.decisions],
        "notes": [note.model_dump(mode="json") for note in plan.notes],
        "proposed_count": len(plan.proposals),
    }


def dumps_report(report: OptimizationReport) -> bytes:
    return orjson.dumps(report_to_dict(report), option=_JSON_OPTIONS)


def dumps_plan(plan: OptimizationPlan) -> bytes:
    return orjson.dumps(plan_to_dict(plan), option=_JSON_OPTIONS)


def write_report(path: Path, report: OptimizationReport) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dumps_report(report) + b"\n")


__all__ = ["dumps_plan", "dumps_report", "plan_to_dict", "report_to_dict", "write_report"]
