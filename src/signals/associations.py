"""Association-mutation signal: related records created through a binding."""

from __future__ import annotations

import re

from contract.models import ConstructionCallSite, PersistenceEvidence
from parse.ruby_lexer import binding_reference
from signals.base import describe, masked_text, matched, unmatched

_CREATING_METHODS = (
    r"create!?|find_or_create_by!?|create_with|insert!?|push|concat|append"
)


class AssociationMutationDetector:
    """Matches ``post.comments.create(...)`` and ``post.comments << comment``."""

    @property
    def name(self) -> str:
        """Detector name used in evidence records."""
        return "association_mutation"

    def detect(self, site: ConstructionCallSite, full_text: str) -> PersistenceEvidence:
        if site.binding_name is None:
            return unmatched(self.name, "no binding; association use cannot be traced")

        ref = binding_reference(site.binding_name)
        patterns = (
            re.compile(
                rf"{ref}\s*&?\.\s*[a-z_]\w*\s*&?\.\s*(?:{_CREATING_METHODS})(?![\w?!])"
            ),
            re.compile(rf"{ref}\s*&?\.\s*[a-z_]\w*\s*<<(?![~-]?[A-Z'\"])"),
        )
        masked = masked_text(full_text)
        for pattern in patterns:
            found = pattern.search(masked)
            if found is not None:
                return matched(self.name, describe(full_text, found.start(), found.end()))
        return unmatched(self.name, f"no association mutation on `{site.binding_name}`")


__all__ = ["AssociationMutationDetector"]
