"""Common detector interface and evidence aggregation."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from contract.models import ConstructionCallSite, PersistenceEvidence, PersistenceSignal
from parse.ruby_lexer import Invocation, iter_invocations, mask_code

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

PARSE_ERROR_SIGNAL = "parse_error"

_ANY_METHOD = re.compile(r"(?<![\w@$:])[A-Za-z_]\w*[?!]?")


@runtime_checkable
class PersistenceDetector(Protocol):
    """Heuristic probing whether a call site's result needs real persistence."""

    @property
    def name(self) -> str: ...

    def detect(
        self, site: ConstructionCallSite, full_text: str
    ) -> PersistenceEvidence: ...


@lru_cache(maxsize=16)
def masked_text(text: str) -> str:
    return mask_code(text)


@lru_cache(maxsize=16)
def invocations(text: str) -> tuple[Invocation, ...]:
    """Every method invocation in ``text``, computed once per distinct text."""
    return tuple(iter_invocations(masked_text(text), _ANY_METHOD))


def containing_invocations(
    site: ConstructionCallSite, text: str
) -> list[Invocation]:
    """Invocations whose argument range lexically contains the call site."""
    span = site.source_span
    return [
        invocation
        for invocation in invocations(text)
        if invocation.args_start <= span.start and span.end <= invocation.args_end
    ]


def callee_chain(callee: str) -> str:
    """Drop argument groups from a receiver chain.

    >>> callee_chain("SyncJob.set(wait: (1 + 2)).perform_later")
    'SyncJob.set.perform_later'
    """
    depth = 0
    kept: list[str] = []
    for ch in callee:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif depth == 0 and not ch.isspace():
            kept.append(ch)
    return "".join(kept)


def matched(name: str, detail: str) -> PersistenceEvidence:
    return PersistenceEvidence(signal_name=name, matched=True, detail=detail)


def unmatched(name: str, detail: str) -> PersistenceEvidence:
    return PersistenceEvidence(signal_name=name, matched=False, detail=detail)


def describe(text: str, start: int, end: int) -> str:
    """Render ``text[start:end]`` with its line number for evidence details."""
    snippet = " ".join(text[start:end].split())
    if len(snippet) > 80:
        snippet = snippet[:77] + "..."
    line = text.count("\n", 0, start) + 1
    return f"`{snippet}` at line {line}"


def describe_invocation(text: str, invocation: Invocation) -> str:
    """Describe an invocation including its receiver chain."""
    start = invocation.name_end - len(invocation.callee)
    end = invocation.args_end + (1 if invocation.parenthesized else 0)
    return describe(text, start, end)


def collect_evidence(
    site: ConstructionCallSite,
    text: str,
    detectors: Sequence[PersistenceDetector],
) -> tuple[PersistenceEvidence, ...]:
    """Run every detector against the site, in order.

    Unparsed sites are not examined; they carry a single parse-error note.
    """
    if site.parse_error is not None:
        return (unmatched(PARSE_ERROR_SIGNAL, site.parse_error),)
    return tuple(detector.detect(site, text) for detector in detectors)


def aggregate_signal(evidence: Iterable[PersistenceEvidence]) -> PersistenceSignal:
    """Logical OR over the evidence: any match requires persistence."""
    if any(item.matched for item in evidence):
        return PersistenceSignal.REQUIRES_PERSISTENCE
    return PersistenceSignal.NO_EVIDENCE


__all__ = [
    "PARSE_ERROR_SIGNAL",
    "PersistenceDetector",
    "aggregate_signal",
    "callee_chain",
    "collect_evidence",
    "containing_invocations",
    "describe",
    "describe_invocation",
    "invocations",
    "masked_text",
    "matched",
    "unmatched",
]
