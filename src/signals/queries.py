"""Query-dependency signal: a binding feeding a lookup against durable storage."""

from __future__ import annotations

import re

from contract.models import ConstructionCallSite, PersistenceEvidence
from parse.ruby_lexer import binding_pattern, binding_reference
from signals.base import (
    callee_chain,
    containing_invocations,
    describe,
    describe_invocation,
    invocations,
    masked_text,
    matched,
    unmatched,
)

LOOKUP_METHODS = (
    "where",
    "not",
    "rewhere",
    "find",
    "find_by",
    "find_by!",
    "find_or_create_by",
    "find_or_create_by!",
    "find_or_initialize_by",
    "exists?",
    "find_each",
    "joins",
    "includes",
    "pluck",
    "count",
)

_LOOKUP_ALTERNATION = "|".join(
    re.escape(name) for name in sorted(LOOKUP_METHODS, key=len, reverse=True)
)

# `User.where(...)`, `Admin::User.find_by(...)`, `described_class.where(...).not(...)`.
_STORAGE_LOOKUP = re.compile(
    rf"^(?:[A-Z]\w*(?:::[A-Z]\w*)*|described_class)"
    rf"(?:\.\w+[?!]?)*\.(?:{_LOOKUP_ALTERNATION}|find_by_\w+)$"
)

_ASSOCIATION_QUERIES = r"where|find|find_by!?|exists\?|count|pluck|ids|sum|order|reload"


def is_storage_lookup(callee: str) -> bool:
    return _STORAGE_LOOKUP.match(callee_chain(callee)) is not None


class QueryDependencyDetector:
    """Matches a binding used as an argument of a storage lookup.

    Also matches queries issued through one of the binding's associations
    (``user.posts.where(...)``), since those filter by the record's key.
    Inline call sites match when they sit inside a lookup's arguments.
    """

    @property
    def name(self) -> str:
        """Detector name used in evidence records."""
        return "query_dependency"

    def detect(self, site: ConstructionCallSite, full_text: str) -> PersistenceEvidence:
        for invocation in containing_invocations(site, full_text):
            if is_storage_lookup(invocation.callee):
                return matched(
                    self.name,
                    describe_invocation(full_text, invocation),
                )

        if site.binding_name is None:
            return unmatched(self.name, "inline call is not a lookup argument")

        masked = masked_text(full_text)
        reference = binding_pattern(site.binding_name)
        for invocation in invocations(full_text):
            if invocation.args_start == invocation.args_end:
                continue
            if not is_storage_lookup(invocation.callee):
                continue
            if reference.search(masked, invocation.args_start, invocation.args_end):
                return matched(
                    self.name,
                    describe_invocation(full_text, invocation),
                )

        association_query = re.compile(
            rf"{binding_reference(site.binding_name)}\s*&?\.\s*[a-z_]\w*\s*&?\.\s*"
            rf"(?:{_ASSOCIATION_QUERIES})(?![\w?!])"
        )
        found = association_query.search(masked)
        if found is not None:
            return matched(self.name, describe(full_text, found.start(), found.end()))
        return unmatched(self.name, f"`{site.binding_name}` is not used in a lookup")


__all__ = ["LOOKUP_METHODS", "QueryDependencyDetector", "is_storage_lookup"]
