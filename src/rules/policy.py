"""Variant selection for a single construction call site.

The policy only ever moves a call to a strictly cheaper variant. Anything
that is not a unit-level file keeps its persisted records, and a unit-level
call with any persistence evidence does too.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from contract.models import (
    ConstructionCallSite,
    Granularity,
    OptimizationDecision,
    PersistenceSignal,
    Variant,
    variant_cost,
)
from signals.base import aggregate_signal

if TYPE_CHECKING:
    from collections.abc import Sequence

    from contract.models import PersistenceEvidence

logger = logging.getLogger(__name__)


def choose_variant(
    granularity: Granularity,
    signal: PersistenceSignal,
    from_variant: Variant,
) -> Variant:
    """Return the cheapest safe variant, never costlier than ``from_variant``."""
    if granularity is Granularity.UNIT and signal is PersistenceSignal.NO_EVIDENCE:
        target = Variant.STUB_PERSISTED
    else:
        target = Variant.PERSISTED

    if variant_cost(target) < variant_cost(from_variant):
        return target
    return from_variant


def _rationale(
    granularity: Granularity,
    evidence: Sequence[PersistenceEvidence],
    from_variant: Variant,
    to_variant: Variant,
) -> str:
    hits = [item for item in evidence if item.matched]
    if hits:
        reasons = "; ".join(f"{item.signal_name}: {item.detail}" for item in hits)
        return f"persistence required ({reasons})"
    if granularity is not Granularity.UNIT:
        return f"{granularity.value} granularity keeps persisted records"
    if to_variant is from_variant:
        return f"`{from_variant.value}` is already the cheapest safe variant"
    return "no persistence evidence at unit granularity"


def decide(
    site: ConstructionCallSite,
    granularity: Granularity,
    evidence: Sequence[PersistenceEvidence],
) -> OptimizationDecision:
    """Build the decision for one site from its collected evidence."""
    if site.parse_error is not None:
        return OptimizationDecision(
            call_site_id=site.id,
            from_variant=site.variant,
            to_variant=site.variant,
            rationale=f"parse_error: {site.parse_error}",
            evidence=tuple(evidence),
            parse_error=site.parse_error,
        )

    signal = aggregate_signal(evidence)
    to_variant = choose_variant(granularity, signal, site.variant)
    decision = OptimizationDecision(
        call_site_id=site.id,
        from_variant=site.variant,
        to_variant=to_variant,
        rationale=_rationale(granularity, evidence, site.variant, to_variant),
        evidence=tuple(evidence),
    )
    if not decision.is_noop:
        logger.info(
            "%s: propose %s -> %s", site.id, site.variant.value, to_variant.value
        )
    return decision


__all__ = ["choose_variant", "decide"]
