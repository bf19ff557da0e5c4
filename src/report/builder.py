"""Assemble the per-file optimization report."""

from __future__ import annotations

from typing import TYPE_CHECKING

from contract.models import (
    Granularity,
    GranularitySource,
    NoteLevel,
    OptimizationDecision,
    OptimizationReport,
    ReportNote,
    ReportStatus,
    VerificationSummary,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from contract.models import ConstructionCallSite


class ReportBuilder:
    """Collects decisions, notes and the verification outcome for one file.

    Decisions are reported in the order of the sites they belong to, one per
    site, whatever order they were added in.
    """

    def __init__(
        self,
        sites: Sequence[ConstructionCallSite],
        granularity: Granularity,
        granularity_source: GranularitySource,
    ) -> None:
        self._site_order = {site.id: index for index, site in enumerate(sites)}
        self._granularity = granularity
        self._granularity_source = granularity_source
        self._decisions: dict[str, OptimizationDecision] = {}
        self._notes: list[ReportNote] = []
        self._status = ReportStatus.CLEAN
        self._verification_attempted = False
        self._verification: VerificationSummary | None = None

    def add_decisions(self, decisions: Iterable[OptimizationDecision]) -> ReportBuilder:
        for decision in decisions:
            if decision.call_site_id not in self._site_order:
                msg = f"decision for unknown call site {decision.call_site_id!r}"
                raise ValueError(msg)
            self._decisions[decision.call_site_id] = decision
        return self

    def add_notes(self, notes: Iterable[ReportNote]) -> ReportBuilder:
        self._notes.extend(notes)
        return self

    def add_note(self, level: NoteLevel, code: str, message: str) -> ReportBuilder:
        self._notes.append(ReportNote(level=level, code=code, message=message))
        return self

    def set_outcome(
        self,
        status: ReportStatus,
        *,
        verification_attempted: bool = False,
        verification: VerificationSummary | None = None,
    ) -> ReportBuilder:
        self._status = status
        self._verification_attempted = verification_attempted
        self._verification = verification
        return self

    def build(self) -> OptimizationReport:
        if len(self._decisions) != len(self._site_order):
            missing = sorted(set(self._site_order) - set(self._decisions))
            msg = f"report is missing decisions for call sites: {', '.join(missing)}"
            raise ValueError(msg)
        decisions = sorted(
            self._decisions.values(),
            key=lambda decision: self._site_order[decision.call_site_id],
        )
        return OptimizationReport(
            decisions=tuple(decisions),
            status=self._status,
            verification_attempted=self._verification_attempted,
            granularity=self._granularity,
            granularity_source=self._granularity_source,
            notes=tuple(self._notes),
            verification=self._verification,
        )


__all__ = ["ReportBuilder"]
