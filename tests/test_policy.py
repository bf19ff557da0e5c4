from __future__ import annotations

import itertools

import pytest

from contract.models import (
    Granularity,
    PersistenceEvidence,
    PersistenceSignal,
    Variant,
    variant_cost,
)
from parse.factory_calls import extract_call_sites
from rules.policy import choose_variant, decide

_COMBINATIONS = list(itertools.product(Granularity, PersistenceSignal, Variant))


@pytest.mark.parametrize(("granularity", "signal", "from_variant"), _COMBINATIONS)
def test_never_upgrades(granularity, signal, from_variant) -> None:
    to_variant = choose_variant(granularity, signal, from_variant)

    assert variant_cost(to_variant) <= variant_cost(from_variant)


@pytest.mark.parametrize(("granularity", "signal", "from_variant"), _COMBINATIONS)
def test_only_unit_files_without_evidence_change(granularity, signal, from_variant) -> None:
    to_variant = choose_variant(granularity, signal, from_variant)

    if granularity is not Granularity.UNIT or signal is PersistenceSignal.REQUIRES_PERSISTENCE:
        assert to_variant is from_variant


def test_unit_create_without_evidence_is_stubbed() -> None:
    assert (
        choose_variant(Granularity.UNIT, PersistenceSignal.NO_EVIDENCE, Variant.PERSISTED)
        is Variant.STUB_PERSISTED
    )
    assert (
        choose_variant(Granularity.UNIT, PersistenceSignal.NO_EVIDENCE, Variant.TRANSIENT)
        is Variant.TRANSIENT
    )


def _evidence(*matched: str) -> list[PersistenceEvidence]:
    return [
        PersistenceEvidence(signal_name=name, matched=name in matched, detail=f"{name} detail")
        for name in ("persistence_accessor", "query_dependency")
    ]


def test_decide_downgrades_with_rationale() -> None:
    (site,) = extract_call_sites("let(:user) { create(:user) }\n")

    decision = decide(site, Granularity.UNIT, _evidence())

    assert decision.call_site_id == site.id
    assert decision.from_variant is Variant.PERSISTED
    assert decision.to_variant is Variant.STUB_PERSISTED
    assert not decision.applied
    assert not decision.is_noop
    assert decision.rationale == "no persistence evidence at unit granularity"
    assert len(decision.evidence) == 2


def test_decide_keeps_persisted_on_evidence() -> None:
    (site,) = extract_call_sites("let(:user) { create(:user) }\n")

    decision = decide(site, Granularity.UNIT, _evidence("query_dependency"))

    assert decision.is_noop
    assert decision.rationale.startswith("persistence required (query_dependency:")


def test_decide_clamps_non_unit_granularity() -> None:
    (site,) = extract_call_sites("let(:user) { create(:user) }\n")

    decision = decide(site, Granularity.REQUEST_LEVEL, _evidence())

    assert decision.is_noop
    assert decision.rationale == "request granularity keeps persisted records"


def test_decide_parse_error_is_noop() -> None:
    (site,) = extract_call_sites("let(:user) { create(attributes) }\n")

    decision = decide(site, Granularity.UNIT, [])

    assert decision.is_noop
    assert decision.parse_error == site.parse_error
    assert decision.rationale == f"parse_error: {site.parse_error}"
