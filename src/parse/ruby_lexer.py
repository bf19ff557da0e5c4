"""Lexical helpers for scanning Ruby spec files without parsing them.

Everything here works on a *masked* copy of the source produced by
:func:`mask_code`: string literal bodies, heredoc bodies and comments are
replaced by spaces, keeping every offset (and every newline) identical to the
original text. Code inside ``#{...}`` interpolation stays visible, since
bindings are routinely referenced there (``"/users/#{user.id}"``).

None of these helpers evaluate anything; they only count brackets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")": "(", "]": "[", "}": "{"}
_PERCENT_CLOSERS = {"(": ")", "[": "]", "{": "}", "<": ">"}

_PERCENT_LITERAL = re.compile(r"%([qQwWiIrs]?)([(\[{<|!/^])")
_HEREDOC_QUOTED = re.compile(r"<<([~-]?)(['\"`])([A-Za-z_]\w*)\2")
_HEREDOC_BARE = re.compile(r"<<([~-]?)([A-Z_][A-Z0-9_]*)\b")
_HEREDOC_FLAGGED = re.compile(r"<<([~-])([a-z_]\w*)")
_BLOCK_COMMENT_END = re.compile(r"^=end\b.*$", re.MULTILINE)
_IDENT_CHAR = re.compile(r"[\w:.!?@&]")


@dataclass
class _Frame:
    kind: str  # "code" or "string"
    close: str = ""
    open: str = ""
    interpolates: bool = False
    depth: int = 0


def _prev_significant(text: str, index: int) -> str:
    """Return the nearest character before ``index`` that is not a space or tab."""
    index -= 1
    while index >= 0 and text[index] in " \t":
        index -= 1
    return text[index] if index >= 0 else ""


def mask_code(text: str) -> str:
    """Blank out string bodies, heredocs and comments, preserving offsets."""
    out = list(text)
    n = len(text)
    stack = [_Frame("code")]
    heredocs: list[tuple[str, bool]] = []
    i = 0

    def blank(start: int, end: int) -> None:
        for k in range(start, end):
            if out[k] != "\n":
                out[k] = " "

    while i < n:
        frame = stack[-1]
        ch = text[i]

        if frame.kind == "string":
            if ch == "\\" and i + 1 < n:
                blank(i, i + 2)
                i += 2
                continue
            if frame.interpolates and text.startswith("#{", i):
                stack.append(_Frame("code"))
                i += 2
                continue
            if frame.open and ch == frame.open:
                frame.depth += 1
                blank(i, i + 1)
            elif ch == frame.close:
                if frame.depth:
                    frame.depth -= 1
                    blank(i, i + 1)
                else:
                    stack.pop()
            else:
                blank(i, i + 1)
            i += 1
            continue

        if ch == "\n":
            i += 1
            if heredocs:
                i = _mask_heredoc_bodies(text, i, heredocs, blank)
                heredocs.clear()
            continue

        if ch == "#":
            end = text.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
            continue

        if ch == "=" and (i == 0 or text[i - 1] == "\n") and text.startswith("=begin", i):
            match = _BLOCK_COMMENT_END.search(text, i)
            end = n if match is None else match.end()
            blank(i, end)
            i = end
            continue

        if ch in "\"'`":
            stack.append(_Frame("string", close=ch, interpolates=ch != "'"))
            i += 1
            continue

        if ch == "%" and _prev_significant(text, i) in "(,=[{|&:;\n":
            match = _PERCENT_LITERAL.match(text, i)
            if match is not None:
                kind, delimiter = match.groups()
                stack.append(
                    _Frame(
                        "string",
                        close=_PERCENT_CLOSERS.get(delimiter, delimiter),
                        open=delimiter if delimiter in _PERCENT_CLOSERS else "",
                        interpolates=kind in ("", "Q", "W", "I", "r"),
                    )
                )
                i = match.end()
                continue

        if ch == "<" and text.startswith("<<", i):
            heredoc = _match_heredoc(text, i)
            if heredoc is not None:
                terminator, indented, end = heredoc
                heredocs.append((terminator, indented))
                i = end
                continue

        if len(stack) > 1:
            if ch == "{":
                frame.depth += 1
            elif ch == "}":
                if frame.depth == 0:
                    stack.pop()
                else:
                    frame.depth -= 1
        i += 1

    return "".join(out)


def _match_heredoc(text: str, index: int) -> tuple[str, bool, int] | None:
    prev = _prev_significant(text, index)
    if prev and (prev.isalnum() or prev in "_)]}"):
        # `comments << comment` is the shovel operator, not a heredoc.
        return None
    match = _HEREDOC_QUOTED.match(text, index)
    if match is not None:
        return match.group(3), bool(match.group(1)), match.end()
    match = _HEREDOC_BARE.match(text, index) or _HEREDOC_FLAGGED.match(text, index)
    if match is not None:
        return match.group(2), bool(match.group(1)), match.end()
    return None


def _mask_heredoc_bodies(
    text: str,
    start: int,
    heredocs: list[tuple[str, bool]],
    blank: Callable[[int, int], None],
) -> int:
    position = start
    for terminator, indented in heredocs:
        while position < len(text):
            end = text.find("\n", position)
            end = len(text) if end == -1 else end
            line = text[position:end]
            blank(position, end)
            position = end + 1
            candidate = line.strip() if indented else line.rstrip("\r")
            if candidate == terminator:
                break
    return min(position, len(text))


def find_closing(masked: str, open_index: int) -> int | None:
    """Return the index of the bracket closing ``masked[open_index]``.

    Brackets of all three kinds must nest properly; a mismatch or end of text
    returns ``None``.
    """
    expected: list[str] = []
    for index in range(open_index, len(masked)):
        ch = masked[index]
        if ch in _OPENERS:
            expected.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not expected or expected[-1] != ch:
                return None
            expected.pop()
            if not expected:
                return index
    return None


def find_opening(masked: str, close_index: int) -> int | None:
    """Mirror of :func:`find_closing`, scanning backwards from a closer."""
    expected: list[str] = []
    for index in range(close_index, -1, -1):
        ch = masked[index]
        if ch in _CLOSERS:
            expected.append(_CLOSERS[ch])
        elif ch in _OPENERS:
            if not expected or expected[-1] != ch:
                return None
            expected.pop()
            if not expected:
                return index
    return None


_STATEMENT_MODIFIER = re.compile(r"[ \t]+(?:if|unless|while|until|rescue|do)\b")


def statement_end(masked: str, start: int) -> int:
    """End offset of a paren-less argument list starting at ``start``.

    The list ends at a newline (unless the line ends with a continuation
    comma or backslash), a ``;``, an unbalanced closing bracket, a trailing
    ``do`` block or a statement modifier such as ``if``.
    """
    depth = 0
    index = start
    n = len(masked)
    while index < n:
        ch = masked[index]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            if depth == 0:
                break
            depth -= 1
        elif depth == 0:
            if ch == ";":
                break
            if ch == "\n":
                if not masked[start:index].rstrip().endswith((",", "\\")):
                    break
            elif ch in " \t" and _STATEMENT_MODIFIER.match(masked, index):
                break
        index += 1
    while index > start and masked[index - 1] in " \t\r\n":
        index -= 1
    return index


def callee_expression(masked: str, end: int) -> str:
    """Return the receiver chain ending right before ``end``.

    ``SyncJob.set(wait: 1).perform_later`` is returned whole: balanced
    argument groups inside the chain are skipped over.
    """
    index = end
    while index > 0:
        ch = masked[index - 1]
        if _IDENT_CHAR.match(ch):
            index -= 1
            continue
        if ch == ")":
            opening = find_opening(masked, index - 1)
            if opening is None or opening == 0 or not _IDENT_CHAR.match(masked[opening - 1]):
                break
            index = opening
            continue
        break
    return masked[index:end].lstrip(".&:")


@dataclass(frozen=True)
class Invocation:
    """A method invocation found lexically in the masked text."""

    callee: str
    name_start: int
    name_end: int
    args_start: int
    args_end: int
    parenthesized: bool


_NOT_AN_ARGUMENT = "=.)]}|&+-*/<>;\n#?:"


def iter_invocations(masked: str, pattern: re.Pattern[str]) -> Iterator[Invocation]:
    """Yield invocations whose method name is matched by ``pattern``.

    The match end must be the end of the method name. Both ``name(args)`` and
    paren-less ``name args`` forms are recognized; a bare reference with no
    arguments yields an empty argument range.
    """
    n = len(masked)
    for match in pattern.finditer(masked):
        name_end = match.end()
        callee = callee_expression(masked, name_end)
        if name_end < n and masked[name_end] == "(":
            close = find_closing(masked, name_end)
            args_end = close if close is not None else statement_end(masked, name_end + 1)
            yield Invocation(callee, match.start(), name_end, name_end + 1, args_end, True)
            continue
        if name_end < n and masked[name_end] in " \t":
            args_start = name_end
            while args_start < n and masked[args_start] in " \t":
                args_start += 1
            symbol_start = masked.startswith(":", args_start) and not masked.startswith(
                "::", args_start
            )
            if args_start < n and (symbol_start or masked[args_start] not in _NOT_AN_ARGUMENT):
                yield Invocation(
                    callee,
                    match.start(),
                    name_end,
                    args_start,
                    statement_end(masked, args_start),
                    False,
                )
                continue
        yield Invocation(callee, match.start(), name_end, name_end, name_end, False)


def binding_reference(name: str) -> str:
    """Regex source for ``name`` not preceded by a receiver, sigil or colon."""
    if name.startswith("@"):
        return rf"(?<![\w@]){re.escape(name)}"
    return rf"(?<![\w@$:.]){re.escape(name)}"


def binding_pattern(name: str) -> re.Pattern[str]:
    """Regex matching a standalone reference to ``name`` (not a key or symbol).

    A value-omitting key such as ``user:`` in ``find_by(user:)`` or
    ``{user:}`` reads the local ``user`` and also matches.
    """
    return re.compile(
        rf"{binding_reference(name)}(?:(?![\w?!]|:(?!:))|:[ \t]*(?=[,)}}]|\Z))"
    )


__all__ = [
    "Invocation",
    "binding_pattern",
    "binding_reference",
    "callee_expression",
    "find_closing",
    "find_opening",
    "iter_invocations",
    "mask_code",
    "statement_end",
]
