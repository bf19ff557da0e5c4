"""Offset-based text patches applied against a single original buffer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from contract.errors import PatchConflictError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from contract.models import ConstructionCallSite, OptimizationDecision


@dataclass(frozen=True, order=True)
class Patch:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str


def apply_patches(text: str, patches: Iterable[Patch]) -> str:
    """Apply all patches in one pass over the original text.

    Offsets always refer to ``text`` as given, so the result does not depend
    on the order in which patches are supplied.

    Raises:
        PatchConflictError: if a patch is out of bounds or two patches overlap.
    """
    ordered = sorted(patches)
    pieces: list[str] = []
    cursor = 0
    for patch in ordered:
        if not 0 <= patch.start <= patch.end <= len(text):
            msg = f"patch [{patch.start}, {patch.end}) is outside the text"
            raise PatchConflictError(msg)
        if patch.start < cursor:
            msg = f"patch [{patch.start}, {patch.end}) overlaps a previous patch ending at {cursor}"
            raise PatchConflictError(msg)
        pieces.append(text[cursor : patch.start])
        pieces.append(patch.replacement)
        cursor = patch.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def patches_for(
    sites_by_id: Mapping[str, ConstructionCallSite],
    decisions: Iterable[OptimizationDecision],
) -> list[Patch]:
    """One patch per non-no-op decision, over the site's strategy-name token.

    Only the method name is rewritten, so the patch for a call nested in
    another call's arguments never overlaps the outer call's patch.
    """
    patches: list[Patch] = []
    for decision in decisions:
        if decision.is_noop:
            continue
        site = sites_by_id[decision.call_site_id]
        patches.append(
            Patch(
                start=site.callee_span.start,
                end=site.callee_span.end,
                replacement=decision.to_variant.value,
            )
        )
    return patches


__all__ = ["Patch", "apply_patches", "patches_for"]
