"""External-consumption signal: a binding handed to a job or service boundary.

The detector cannot see inside the callee, so a binding passed across such a
boundary is taken as evidence on its own.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from contract.models import ConstructionCallSite, PersistenceEvidence
from parse.ruby_lexer import binding_pattern
from signals.base import (
    callee_chain,
    containing_invocations,
    describe_invocation,
    invocations,
    masked_text,
    matched,
    unmatched,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_JOB_SUFFIXES = ("Job", "Worker")
DEFAULT_SERVICE_SUFFIXES = (
    "Service",
    "Interactor",
    "Command",
    "Operation",
    "Client",
    "Gateway",
    "Handler",
)

JOB_DISPATCH_METHODS = (
    "perform_later",
    "perform_now",
    "perform_async",
    "perform_in",
    "perform_at",
    "perform_inline",
    "perform",
)
SERVICE_CALL_METHODS = ("call", "call!", "perform", "run", "execute", "process", "new")

_ENQUEUE_MATCHER = re.compile(
    r"(?:^|\.)(?:have_enqueued_\w+|have_been_enqueued|enqueue_\w+|have_enqueued_sidekiq_job)"
    r"(?:\.\w+[?!]?)*\.with$"
)


def _alternation(names: Sequence[str]) -> str:
    return "|".join(re.escape(name) for name in sorted(set(names), key=len, reverse=True))


class ExternalConsumptionDetector:
    """Matches bindings passed into job dispatch, service calls, mailers or
    enqueue matchers.
    """

    def __init__(
        self,
        job_suffixes: Sequence[str] = (),
        service_suffixes: Sequence[str] = (),
    ) -> None:
        jobs = _alternation((*DEFAULT_JOB_SUFFIXES, *job_suffixes))
        services = _alternation((*DEFAULT_SERVICE_SUFFIXES, *service_suffixes))
        self._boundaries = (
            re.compile(
                rf"^(?:[\w:]*::)?(?:[A-Z]\w*)?(?:{jobs})"
                rf"(?:\.set|\.new)?\.(?:{_alternation(JOB_DISPATCH_METHODS)})$"
            ),
            re.compile(
                rf"^(?:[\w:]*::)?(?:[A-Z]\w*)?(?:{services})"
                rf"(?:\.new)?\.(?:{_alternation(SERVICE_CALL_METHODS)})$"
            ),
            re.compile(r"^(?:[\w:]*::)?(?:[A-Z]\w*)?Mailer(?:\.with)?\.\w+[?!]?$"),
            _ENQUEUE_MATCHER,
        )

    @property
    def name(self) -> str:
        """Detector name used in evidence records."""
        return "external_consumption"

    def is_boundary(self, callee: str) -> bool:
        chain = callee_chain(callee)
        return any(pattern.search(chain) for pattern in self._boundaries)

    def detect(self, site: ConstructionCallSite, full_text: str) -> PersistenceEvidence:
        for invocation in containing_invocations(site, full_text):
            if self.is_boundary(invocation.callee):
                return matched(self.name, describe_invocation(full_text, invocation))

        if site.binding_name is None:
            return unmatched(self.name, "inline call is not passed across a boundary")

        masked = masked_text(full_text)
        reference = binding_pattern(site.binding_name)
        for invocation in invocations(full_text):
            if invocation.args_start == invocation.args_end:
                continue
            if not self.is_boundary(invocation.callee):
                continue
            if reference.search(masked, invocation.args_start, invocation.args_end):
                return matched(self.name, describe_invocation(full_text, invocation))
        return unmatched(
            self.name, f"`{site.binding_name}` is not passed to a job or service"
        )


__all__ = [
    "DEFAULT_JOB_SUFFIXES",
    "DEFAULT_SERVICE_SUFFIXES",
    "ExternalConsumptionDetector",
]
