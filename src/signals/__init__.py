"""Persistence signal detectors.

Each detector implements :class:`signals.base.PersistenceDetector`. The set
in use is chosen by name, so heuristics can be added or dropped through
configuration without touching the decision policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from signals.accessors import PersistenceAccessorDetector
from signals.associations import AssociationMutationDetector
from signals.base import PersistenceDetector, aggregate_signal, collect_evidence
from signals.external import ExternalConsumptionDetector
from signals.nesting import NestedConstructionDetector
from signals.queries import QueryDependencyDetector

if TYPE_CHECKING:
    from collections.abc import Sequence

DETECTOR_NAMES = (
    "persistence_accessor",
    "association_mutation",
    "query_dependency",
    "external_consumption",
    "nested_construction",
)


def build_detectors(
    names: Sequence[str] = DETECTOR_NAMES,
    *,
    job_suffixes: Sequence[str] = (),
    service_suffixes: Sequence[str] = (),
) -> list[PersistenceDetector]:
    """Instantiate detectors by name, preserving the requested order."""
    detectors: list[PersistenceDetector] = []
    for name in names:
        if name == "persistence_accessor":
            detectors.append(PersistenceAccessorDetector())
        elif name == "association_mutation":
            detectors.append(AssociationMutationDetector())
        elif name == "query_dependency":
            detectors.append(QueryDependencyDetector())
        elif name == "external_consumption":
            detectors.append(
                ExternalConsumptionDetector(
                    job_suffixes=job_suffixes,
                    service_suffixes=service_suffixes,
                )
            )
        elif name == "nested_construction":
            detectors.append(NestedConstructionDetector())
        else:
            msg = f"Unknown detector '{name}'. Valid detectors: {', '.join(DETECTOR_NAMES)}"
            raise ValueError(msg)
    return detectors


__all__ = [
    "DETECTOR_NAMES",
    "AssociationMutationDetector",
    "ExternalConsumptionDetector",
    "NestedConstructionDetector",
    "PersistenceAccessorDetector",
    "PersistenceDetector",
    "QueryDependencyDetector",
    "aggregate_signal",
    "build_detectors",
    "collect_evidence",
]
