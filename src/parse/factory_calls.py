"""Lexical extraction of FactoryBot construction call sites from spec text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from contract.errors import ParseError
from contract.models import ConstructionCallSite, Variant
from parse.bindings import binding_for, find_lazy_bindings
from parse.ruby_lexer import find_closing, mask_code, statement_end
from utils import LineIndex, site_id

logger = logging.getLogger(__name__)

_FACTORY_CALL = re.compile(
    r"(?<![\w?!.:@$])"
    r"(?:(?P<receiver>FactoryBot|FactoryGirl)\s*\.\s*)?"
    r"(?P<strategy>build_stubbed|build|create)"
    r"(?![\w?!]|:(?!:))"
)
_METHOD_DEFINITION = re.compile(r"\bdef\s+(?:self\s*\.\s*)?$")
_FACTORY_NAME = re.compile(
    r"\s*(?::(?P<symbol>[A-Za-z_]\w*)|:\"(?P<quoted_symbol>[^\"]+)\"|"
    r"[\"'](?P<string>[A-Za-z_][\w/]*)[\"'])"
)


@dataclass(frozen=True)
class _RawCall:
    strategy: str
    start: int
    end: int
    callee_start: int
    callee_end: int
    args_start: int
    args_end: int
    schema_name: str | None
    parse_error: str | None


def _closing_paren(masked: str, open_index: int) -> int:
    close = find_closing(masked, open_index)
    if close is None:
        msg = "unbalanced parentheses in argument list"
        raise ParseError(msg)
    return close


def _factory_name(text: str, args_start: int, args_end: int) -> str:
    """Return the factory named by the first argument.

    Raises:
        ParseError: If the first argument is not a symbol or string literal.
    """
    match = _FACTORY_NAME.match(text, args_start, args_end)
    if match is None:
        msg = "first argument is not a factory name literal"
        raise ParseError(msg)
    return match.group("symbol") or match.group("quoted_symbol") or match.group("string")


def _scan_calls(text: str, masked: str) -> list[_RawCall]:
    calls: list[_RawCall] = []
    n = len(masked)
    for match in _FACTORY_CALL.finditer(masked):
        line_start = masked.rfind("\n", 0, match.start()) + 1
        if _METHOD_DEFINITION.search(masked, line_start, match.start()):
            continue

        name_end = match.end("strategy")
        if name_end < n and masked[name_end] == "(":
            try:
                close = _closing_paren(masked, name_end)
            except ParseError as exc:
                line_end = masked.find("\n", name_end)
                line_end = n if line_end == -1 else line_end
                logger.debug("unparsed call at offset %d: %s", match.start(), exc)
                calls.append(
                    _RawCall(
                        strategy=match.group("strategy"),
                        start=match.start(),
                        end=line_end,
                        callee_start=match.start("strategy"),
                        callee_end=name_end,
                        args_start=name_end + 1,
                        args_end=line_end,
                        schema_name=None,
                        parse_error=str(exc),
                    )
                )
                continue
            args_start, args_end, end = name_end + 1, close, close + 1
        elif name_end < n and masked[name_end] in " \t":
            args_start = name_end
            while args_start < n and masked[args_start] in " \t":
                args_start += 1
            # Paren-less form only counts when the first argument is a factory name.
            if not text.startswith((":", '"', "'"), args_start) or text.startswith(
                "::", args_start
            ):
                continue
            args_end = statement_end(masked, args_start)
            end = args_end
        else:
            continue

        schema_name: str | None = None
        parse_error: str | None = None
        try:
            schema_name = _factory_name(text, args_start, args_end)
        except ParseError as exc:
            logger.debug("unparsed call at offset %d: %s", match.start(), exc)
            parse_error = str(exc)
        calls.append(
            _RawCall(
                strategy=match.group("strategy"),
                start=match.start(),
                end=end,
                callee_start=match.start("strategy"),
                callee_end=name_end,
                args_start=args_start,
                args_end=args_end,
                schema_name=schema_name,
                parse_error=parse_error,
            )
        )
    return calls


def _enclosing_call(call: _RawCall, calls: list[_RawCall]) -> _RawCall | None:
    innermost: _RawCall | None = None
    for other in calls:
        if other is call:
            continue
        if other.args_start <= call.start and call.end <= other.args_end and (
            innermost is None or other.args_start >= innermost.args_start
        ):
            innermost = other
    return innermost


def extract_call_sites(text: str) -> list[ConstructionCallSite]:
    """Extract every construction call site from spec source text.

    Returns call sites ordered by their offset in the text. Invocations that
    look like construction calls but whose arguments cannot be read (no
    factory name literal, unbalanced parentheses) are still returned, with
    ``parse_error`` set, so they can be reported; they are never rewritten.

    Matching is purely lexical: string literals and comments are ignored and
    argument expressions are captured verbatim, never evaluated.
    """
    masked = mask_code(text)
    index = LineIndex(text)
    lazy_bindings = find_lazy_bindings(masked)
    raw_calls = _scan_calls(text, masked)

    sites: list[ConstructionCallSite] = []
    for call in raw_calls:
        variant = Variant(call.strategy)
        span = index.span(call.start, call.end)
        enclosing = _enclosing_call(call, raw_calls)
        binding_name = None
        if enclosing is None and call.parse_error is None:
            binding_name = binding_for(masked, call.start, call.end, lazy_bindings)
        sites.append(
            ConstructionCallSite(
                id=site_id(span, variant.value, call.schema_name),
                variant=variant,
                schema_name=call.schema_name,
                argument_text=text[call.args_start : call.args_end],
                binding_name=binding_name,
                source_span=span,
                callee_span=index.span(call.callee_start, call.callee_end),
                enclosing_variant=Variant(enclosing.strategy) if enclosing else None,
                parse_error=call.parse_error,
            )
        )

    parse_errors = sum(1 for site in sites if site.parse_error)
    logger.debug(
        "extracted %d construction call sites (%d unparsed, %d bound)",
        len(sites),
        parse_errors,
        sum(1 for site in sites if site.binding_name),
    )
    return sites


__all__ = ["extract_call_sites"]
