"""Recover the name a construction call's result is bound to.

Two binding shapes are recognized, both lexically:

- lazily evaluated RSpec fixtures: ``let(:user) { ... }``,
  ``let!(:user) do ... end``, ``subject(:user) { ... }`` and the anonymous
  ``subject { ... }`` (bound to ``subject``);
- a direct assignment in the same statement: ``user = create(:user)`` or
  ``@user = create(:user)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from parse.ruby_lexer import find_closing

_LAZY_BINDING = re.compile(
    r"(?<![\w.:@])(let!?|subject!?)"
    r"(?:\s*\(\s*:(?P<name>[a-z_]\w*[?!]?)\s*\))?"
    r"\s*(?P<opener>\{|\bdo\b)"
)
_BLOCK_KEYWORD = re.compile(
    r"(?<![\w.:@$])(do|def|class|module|begin|case|if|unless|while|until|for|end)(?![\w?!:])"
)
_STATEMENT_OPENING_KEYWORDS = frozenset({"if", "unless", "while", "until"})
_ALWAYS_OPENING_KEYWORDS = frozenset({"do", "def", "class", "module", "begin", "case", "for"})
_ASSIGNMENT_TAIL = re.compile(r"(@{0,2}[a-z_]\w*)\s*(?:\|\|)?=\s*$")
_STATEMENT_BREAK = re.compile(r"[;{]|\bdo\b|\bthen\b|\|[\w\s,*&]*\|(?!=)")


@dataclass(frozen=True)
class LazyBinding:
    """A ``let``/``subject`` block: its name and the offsets of its body."""

    name: str
    keyword: str
    body_start: int
    body_end: int


def find_lazy_bindings(masked: str) -> list[LazyBinding]:
    """Return every ``let``/``subject`` block with a resolvable body, in order."""
    bindings: list[LazyBinding] = []
    for match in _LAZY_BINDING.finditer(masked):
        keyword = match.group(1)
        name = match.group("name") or ("subject" if keyword.startswith("subject") else None)
        if name is None:
            continue
        opener_start = match.start("opener")
        if match.group("opener") == "{":
            close = find_closing(masked, opener_start)
        else:
            close = find_do_block_end(masked, opener_start)
        if close is None:
            continue
        bindings.append(
            LazyBinding(
                name=name,
                keyword=keyword,
                body_start=match.end("opener"),
                body_end=close,
            )
        )
    return bindings


def find_do_block_end(masked: str, do_index: int) -> int | None:
    """Return the offset of the ``end`` keyword closing the ``do`` at ``do_index``.

    ``if``/``unless``/``while``/``until`` only open a block when they start a
    statement; in modifier position (``x if y``) they do not.
    """
    depth = 0
    for match in _BLOCK_KEYWORD.finditer(masked, do_index):
        keyword = match.group(1)
        if keyword == "end":
            depth -= 1
            if depth == 0:
                return match.start()
            continue
        if keyword in _ALWAYS_OPENING_KEYWORDS or (
            keyword in _STATEMENT_OPENING_KEYWORDS
            and _starts_statement(masked, match.start())
        ):
            depth += 1
    return None


def _starts_statement(masked: str, index: int) -> bool:
    line_start = masked.rfind("\n", 0, index) + 1
    prefix = masked[line_start:index].rstrip()
    return not prefix or prefix.endswith(("=", "(", ";"))


def assignment_target(masked: str, call_start: int) -> str | None:
    """Name assigned by ``name = <call>`` when the call starts the right-hand side."""
    line_start = masked.rfind("\n", 0, call_start) + 1
    prefix = masked[line_start:call_start]
    breaks = list(_STATEMENT_BREAK.finditer(prefix))
    if breaks:
        prefix = prefix[breaks[-1].end() :]
    match = _ASSIGNMENT_TAIL.search(prefix)
    if match is None:
        return None
    return match.group(1)


def binding_for(
    masked: str,
    start: int,
    end: int,
    lazy_bindings: list[LazyBinding],
) -> str | None:
    """Resolve the binding for the call occupying ``[start, end)``.

    A direct assignment wins over an enclosing ``let`` block; among ``let``
    blocks the innermost one containing the call is used.
    """
    assigned = assignment_target(masked, start)
    if assigned is not None:
        return assigned
    innermost: LazyBinding | None = None
    for lazy in lazy_bindings:
        if lazy.body_start <= start and end <= lazy.body_end and (
            innermost is None or lazy.body_start >= innermost.body_start
        ):
            innermost = lazy
    return innermost.name if innermost is not None else None


__all__ = [
    "LazyBinding",
    "assignment_target",
    "binding_for",
    "find_do_block_end",
    "find_lazy_bindings",
]
