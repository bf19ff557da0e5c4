"""Shared utilities for offset bookkeeping."""

from __future__ import annotations

from bisect import bisect_right

from contract.models import SourceSpan


class LineIndex:
    """Map text offsets to 1-based line/column pairs.

    Examples:
        >>> index = LineIndex("ab\\ncd")
        >>> index.line_col(0)
        (1, 1)
        >>> index.line_col(3)
        (2, 1)
    """

    def __init__(self, text: str) -> None:
        self._line_starts = [0]
        for offset, char in enumerate(text):
            if char == "\n":
                self._line_starts.append(offset + 1)

    def line_col(self, offset: int) -> tuple[int, int]:
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def span(self, start: int, end: int) -> SourceSpan:
        start_line, start_col = self.line_col(start)
        end_line, end_col = self.line_col(end)
        return SourceSpan(
            start=start,
            end=end,
            start_line=start_line,
            start_col=start_col,
            end_line=end_line,
            end_col=end_col,
        )


def site_id(span: SourceSpan, variant: str, schema_name: str | None) -> str:
    """Build the canonical call-site id ``site:L{line}:C{col}:{variant}:{schema}``."""
    schema = schema_name if schema_name else "<unparsed>"
    return f"site:L{span.start_line}:C{span.start_col}:{variant}:{schema}"


__all__ = ["LineIndex", "site_id"]
