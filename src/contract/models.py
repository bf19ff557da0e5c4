"""Records exchanged between the optimizer stages and with the caller.

Every record is an immutable pydantic model. A stage that needs a changed
record (for example marking a decision as applied after verification) makes
a copy with ``model_copy(update=...)`` instead of mutating it.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Report schema version for serialized optimization reports.
REPORT_SCHEMA_VERSION = 1


class Variant(str, Enum):
    """Construction strategies, named after the FactoryBot methods."""

    TRANSIENT = "build"
    STUB_PERSISTED = "build_stubbed"
    PERSISTED = "create"


_VARIANT_COST: dict[Variant, int] = {
    Variant.TRANSIENT: 0,
    Variant.STUB_PERSISTED: 1,
    Variant.PERSISTED: 2,
}


def variant_cost(variant: Variant) -> int:
    """Return the relative cost of a construction variant (higher is costlier)."""
    return _VARIANT_COST[variant]


class Granularity(str, Enum):
    """Scope of a test file."""

    UNIT = "unit"
    INTEGRATION = "integration"
    REQUEST_LEVEL = "request"
    END_TO_END = "end_to_end"


class PersistenceSignal(str, Enum):
    REQUIRES_PERSISTENCE = "requires_persistence"
    NO_EVIDENCE = "no_evidence"


class ReportStatus(str, Enum):
    CLEAN = "clean"
    OPTIMIZED = "optimized"
    REVERTED = "reverted"
    ERROR = "error"


GranularitySource = Literal["explicit", "inferred", "default"]
NoteLevel = Literal["info", "warning", "error"]
OracleOutcome = Literal["passed", "failed", "timeout", "crashed"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SourceSpan(_Frozen):
    """Half-open ``[start, end)`` range of offsets into the decoded file text.

    Line and column numbers are 1-based and only used for reporting.
    """

    start: int
    end: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def contains(self, other: SourceSpan) -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: SourceSpan) -> bool:
        return self.start < other.end and other.start < self.end


class ConstructionCallSite(_Frozen):
    """A single FactoryBot construction call found in a test file."""

    id: str
    variant: Variant
    schema_name: str | None
    argument_text: str
    binding_name: str | None = None
    source_span: SourceSpan
    callee_span: SourceSpan = Field(
        description="Span of the strategy name token inside source_span"
    )
    enclosing_variant: Variant | None = Field(
        default=None,
        description="Variant of the construction call whose arguments contain this one",
    )
    parse_error: str | None = None

    @property
    def parsed(self) -> bool:
        return self.parse_error is None


class PersistenceEvidence(_Frozen):
    signal_name: str
    matched: bool
    detail: str


class OptimizationDecision(_Frozen):
    call_site_id: str
    from_variant: Variant
    to_variant: Variant
    rationale: str
    applied: bool = False
    evidence: tuple[PersistenceEvidence, ...] = ()
    parse_error: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.to_variant == self.from_variant


class ReportNote(_Frozen):
    level: NoteLevel
    code: str
    message: str


class VerificationSummary(_Frozen):
    """Outcome of one verification oracle run."""

    outcome: OracleOutcome
    returncode: int | None
    elapsed_seconds: float
    last_output_lines: tuple[str, ...] = ()


class OptimizationReport(_Frozen):
    schema_version: int = Field(default=REPORT_SCHEMA_VERSION)
    decisions: tuple[OptimizationDecision, ...]
    status: ReportStatus
    verification_attempted: bool
    granularity: Granularity
    granularity_source: GranularitySource
    notes: tuple[ReportNote, ...] = ()
    verification: VerificationSummary | None = None

    @property
    def applied_count(self) -> int:
        return sum(1 for decision in self.decisions if decision.applied)

    @property
    def proposed_count(self) -> int:
        return sum(1 for decision in self.decisions if not decision.is_noop)


class OptimizationResult(_Frozen):
    """Final text handed back to the caller together with its report."""

    text: str
    report: OptimizationReport


class OptimizationPlan(_Frozen):
    """Decisions and candidate text for a file, before any verification."""

    granularity: Granularity
    granularity_source: GranularitySource
    sites: tuple[ConstructionCallSite, ...]
    decisions: tuple[OptimizationDecision, ...]
    notes: tuple[ReportNote, ...] = ()
    candidate_text: str

    @property
    def proposals(self) -> tuple[OptimizationDecision, ...]:
        return tuple(decision for decision in self.decisions if not decision.is_noop)


__all__ = [
    "REPORT_SCHEMA_VERSION",
    "ConstructionCallSite",
    "Granularity",
    "GranularitySource",
    "NoteLevel",
    "OptimizationDecision",
    "OptimizationPlan",
    "OptimizationReport",
    "OptimizationResult",
    "OracleOutcome",
    "PersistenceEvidence",
    "PersistenceSignal",
    "ReportNote",
    "ReportStatus",
    "SourceSpan",
    "Variant",
    "VerificationSummary",
    "variant_cost",
]
