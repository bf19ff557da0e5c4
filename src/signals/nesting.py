"""Nested-construction signal: a call used as an association of another record."""

from __future__ import annotations

from contract.models import ConstructionCallSite, PersistenceEvidence
from signals.base import matched, unmatched


class NestedConstructionDetector:
    """Matches calls nested in the arguments of any construction call.

    ``create(:post, author: build_stubbed(:user))`` saves a post pointing at a
    record that was never written. The enclosing variant is not consulted:
    it may itself be rewritten in the same run, and the nested call must get
    the same verdict before and after that rewrite.
    """

    @property
    def name(self) -> str:
        """Detector name used in evidence records."""
        return "nested_construction"

    def detect(self, site: ConstructionCallSite, full_text: str) -> PersistenceEvidence:
        enclosing = site.enclosing_variant
        if enclosing is None:
            return unmatched(self.name, "not nested in another construction call")
        return matched(
            self.name,
            f"argument of an enclosing construction call at line "
            f"{site.source_span.start_line}",
        )


__all__ = ["NestedConstructionDetector"]
