"""Persistence-accessor signal: identity or persisted-state use of a binding."""

from __future__ import annotations

import re

from contract.models import ConstructionCallSite, PersistenceEvidence
from parse.ruby_lexer import binding_reference
from signals.base import describe, masked_text, matched, unmatched

# Reading identity or persisted state, reloading, or writing through the record.
# Stubbed records raise on the writes; built records have no identity.
PERSISTENCE_ACCESSORS = (
    "id",
    "persisted?",
    "new_record?",
    "destroyed?",
    "previously_new_record?",
    "reload",
    "save",
    "save!",
    "update",
    "update!",
    "update_attribute",
    "update_column",
    "update_columns",
    "destroy",
    "destroy!",
    "delete",
    "touch",
    "lock!",
    "increment!",
    "decrement!",
    "toggle!",
)

_ACCESSOR_ALTERNATION = "|".join(
    re.escape(name) for name in sorted(PERSISTENCE_ACCESSORS, key=len, reverse=True)
)


class PersistenceAccessorDetector:
    """Matches ``binding.id``, ``binding.persisted?``, ``binding.reload`` and friends."""

    @property
    def name(self) -> str:
        """Detector name used in evidence records."""
        return "persistence_accessor"

    def detect(self, site: ConstructionCallSite, full_text: str) -> PersistenceEvidence:
        if site.binding_name is None:
            return unmatched(self.name, "no binding; accessor use cannot be traced")

        ref = binding_reference(site.binding_name)
        accessor = re.compile(
            rf"{ref}\s*&?\.\s*(?:{_ACCESSOR_ALTERNATION})(?![\w?!])"
        )
        matcher = re.compile(
            rf"expect\s*\(\s*{ref}\s*\)\s*\.\s*(?:to|not_to|to_not)\s*\(?\s*be_(?:persisted|new_record)\b"
        )
        masked = masked_text(full_text)
        for pattern in (accessor, matcher):
            found = pattern.search(masked)
            if found is not None:
                return matched(self.name, describe(full_text, found.start(), found.end()))
        return unmatched(self.name, f"no persistence accessor on `{site.binding_name}`")


__all__ = ["PERSISTENCE_ACCESSORS", "PersistenceAccessorDetector"]
