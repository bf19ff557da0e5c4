"""Stable record and error surface of factory-opt.

Callers (the orchestration layer, the CLI, the tests) import the data model
from here rather than from the individual stage packages.
"""

from contract.errors import (
    OptimizerError,
    OracleUnavailableError,
    ParseError,
    PatchConflictError,
    ScratchResourceError,
)
from contract.models import (
    REPORT_SCHEMA_VERSION,
    ConstructionCallSite,
    Granularity,
    OptimizationDecision,
    OptimizationPlan,
    OptimizationReport,
    OptimizationResult,
    PersistenceEvidence,
    PersistenceSignal,
    ReportNote,
    ReportStatus,
    SourceSpan,
    Variant,
    VerificationSummary,
    variant_cost,
)

__all__ = [
    "REPORT_SCHEMA_VERSION",
    "ConstructionCallSite",
    "Granularity",
    "OptimizationDecision",
    "OptimizationPlan",
    "OptimizationReport",
    "OptimizationResult",
    "OptimizerError",
    "OracleUnavailableError",
    "ParseError",
    "PatchConflictError",
    "PersistenceEvidence",
    "PersistenceSignal",
    "ReportNote",
    "ReportStatus",
    "ScratchResourceError",
    "SourceSpan",
    "Variant",
    "VerificationSummary",
    "variant_cost",
]
