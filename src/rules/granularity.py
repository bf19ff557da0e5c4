"""Resolve the granularity of a spec file."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from contract.models import Granularity, GranularitySource, ReportNote
from parse.ruby_lexer import mask_code

logger = logging.getLogger(__name__)

GRANULARITY_ALIASES: dict[str, Granularity] = {
    "unit": Granularity.UNIT,
    "model": Granularity.UNIT,
    "integration": Granularity.INTEGRATION,
    "job": Granularity.INTEGRATION,
    "worker": Granularity.INTEGRATION,
    "request": Granularity.REQUEST_LEVEL,
    "request_level": Granularity.REQUEST_LEVEL,
    "controller": Granularity.REQUEST_LEVEL,
    "end_to_end": Granularity.END_TO_END,
    "e2e": Granularity.END_TO_END,
    "system": Granularity.END_TO_END,
    "feature": Granularity.END_TO_END,
}


def _type_cue(*types: str) -> re.Pattern[str]:
    alternation = "|".join(types)
    return re.compile(rf"\btype\s*(?::|=>)\s*:(?:{alternation})\b")


# Most conservative first: the first granularity with a matching cue wins.
_TEXT_CUES: tuple[tuple[Granularity, tuple[re.Pattern[str], ...]], ...] = (
    (
        Granularity.END_TO_END,
        (
            _type_cue("system", "feature"),
            re.compile(r"\b(?:RSpec\.)?feature\s+['\"]"),
            re.compile(r"(?<![\w.])visit\s*\(?\s*\S"),
            re.compile(r"(?<![\w.])page\s*\.\s*(?:has_|find|click|fill_in)"),
        ),
    ),
    (
        Granularity.REQUEST_LEVEL,
        (
            _type_cue("request", "controller", "routing"),
            re.compile(
                r"(?m)^\s*(?:get|post|put|patch|delete|head)\s*\(?\s*"
                r"(?:['\"]|\w+_(?:path|url)\b)"
            ),
        ),
    ),
    (
        Granularity.INTEGRATION,
        (_type_cue("job", "worker", "integration", "mailbox", "channel"),),
    ),
    (
        Granularity.UNIT,
        (_type_cue("model", "helper", "mailer", "service", "lib", "policy"),),
    ),
)


@dataclass(frozen=True)
class GranularityResolution:
    granularity: Granularity
    source: GranularitySource
    notes: tuple[ReportNote, ...] = ()


def parse_granularity(value: str | Granularity | None) -> Granularity | None:
    """Map an externally supplied granularity to the enum, or ``None``."""
    if value is None:
        return None
    if isinstance(value, Granularity):
        return value
    return GRANULARITY_ALIASES.get(value.strip().lower().replace("-", "_"))


def infer_granularity(text: str) -> Granularity | None:
    """Infer granularity from textual cues, ignoring strings and comments."""
    masked = mask_code(text)
    for granularity, cues in _TEXT_CUES:
        for cue in cues:
            if cue.search(masked):
                return granularity
    return None


def resolve_granularity(
    text: str,
    explicit: str | Granularity | None = None,
    *,
    default: Granularity = Granularity.INTEGRATION,
) -> GranularityResolution:
    """Resolve a file's granularity; never fails.

    An explicit, valid value is used verbatim. Otherwise textual cues decide,
    and when none matches the configured default applies together with a
    warning-level note.
    """
    notes: list[ReportNote] = []
    parsed = parse_granularity(explicit)
    if parsed is not None:
        return GranularityResolution(parsed, "explicit")
    if explicit is not None:
        notes.append(
            ReportNote(
                level="warning",
                code="granularity_invalid",
                message=f"Ignoring unrecognized granularity {explicit!r}",
            )
        )

    inferred = infer_granularity(text)
    if inferred is not None:
        return GranularityResolution(inferred, "inferred", tuple(notes))

    logger.warning("no granularity cue found; falling back to %s", default.value)
    notes.append(
        ReportNote(
            level="warning",
            code="granularity_unresolved",
            message=(
                "No explicit granularity and no textual cue; "
                f"using default {default.value!r}"
            ),
        )
    )
    return GranularityResolution(default, "default", tuple(notes))


__all__ = [
    "GRANULARITY_ALIASES",
    "GranularityResolution",
    "infer_granularity",
    "parse_granularity",
    "resolve_granularity",
]
