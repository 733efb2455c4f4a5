# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Parser for classic (normal format) diff summaries.

A summary line looks like ``12,14c10,11``, ``5a6,7`` or ``20,22d19``: an old
line span, one operator character and a new line span. Lines starting with
``<``, ``-`` or ``>`` carry the changed text itself and are not directives.

Two failure modes are deliberately treated differently:

- a span that does not parse yields the ``NO_SPAN`` sentinel and the
  directive is skipped,
- a line with no operator at all is a hard ``DiffParseError``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from returns.result import Failure, Result, Success

from .errors import DiffParseError, cannot_parse_diff_line

logger = logging.getLogger(__name__)

DETAIL_PREFIXES = ("<", "-", ">")


@dataclass(frozen=True)
class LineSpan:
    """A 1-based inclusive range of lines.

    ``valid`` is False only for the ``NO_SPAN`` sentinel. It is excluded from
    comparisons so the sentinel still equals ``LineSpan(0, 0)``.
    """
    start: int
    end: int
    valid: bool = field(default=True, compare=False)

    @classmethod
    def single(cls, line: int) -> LineSpan:
        return cls(line, line)

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start},{self.end}"


NO_SPAN = LineSpan(0, 0, valid=False)


class DirectiveKind(Enum):
    """Operator of a diff directive."""
    APPEND = "a"
    CHANGE = "c"
    DELETE = "d"


OPERATORS = frozenset(kind.value for kind in DirectiveKind)


@dataclass(frozen=True)
class DiffDirective:
    """One summary line: how an old line range maps to new content.

    Attributes:
        kind: append, change or delete
        old_span: lines in the original text (for APPEND, the line after
            which the new lines are inserted; 0 means the top)
        new_span: lines in the reformatted text holding the replacement
    """
    kind: DirectiveKind
    old_span: LineSpan
    new_span: LineSpan

    def __str__(self) -> str:
        return f"{self.old_span}{self.kind.value}{self.new_span}"


def _parse_line_number(text: str) -> int:
    # int() would accept "+3", " 3" and "3_0"
    if not text.isascii() or not text.isdigit():
        raise ValueError(text)
    return int(text)


def parse_span(text: str) -> LineSpan:
    """Parse ``"N"`` or ``"N,M"`` into a LineSpan.

    Malformed input is logged and returns ``NO_SPAN``; this never raises.
    """
    start_text, sep, end_text = text.partition(",")
    try:
        start = _parse_line_number(start_text)
        if not sep:
            return LineSpan.single(start)
        end = _parse_line_number(end_text)
    except ValueError:
        logger.warning("cannot parse span %r", text)
        return NO_SPAN
    if end < start:
        logger.warning("cannot parse span %r: end before start", text)
        return NO_SPAN
    return LineSpan(start, end)


def is_detail_line(line: str) -> bool:
    """True for the text lines of a summary (``<``, ``-`` or ``>`` prefix)."""
    return line.startswith(DETAIL_PREFIXES)


def parse_directive(line: str) -> Result[DiffDirective | None, DiffParseError]:
    """Parse one summary line.

    Args:
        line: A non-empty, non-detail line of a normal diff

    Returns:
        Success(DiffDirective), Success(None) when a span did not parse and
        the directive should be skipped, or Failure(DiffParseError) when the
        line has no a/c/d operator.
    """
    index = next((i for i, ch in enumerate(line) if ch in OPERATORS), -1)
    if index < 0:
        return Failure(cannot_parse_diff_line(line))

    old_span = parse_span(line[:index])
    new_span = parse_span(line[index + 1:])
    if not old_span.valid or not new_span.valid:
        return Success(None)

    return Success(DiffDirective(
        kind=DirectiveKind(line[index]),
        old_span=old_span,
        new_span=new_span,
    ))


def iter_directives_reversed(
    summary: str,
) -> Iterator[Result[DiffDirective | None, DiffParseError]]:
    """Yield parse results for the summary lines, last line first.

    Empty lines and detail lines are skipped. Walking backwards keeps the
    line numbers of pending directives valid while earlier ones are applied.
    """
    for line in reversed(summary.split("\n")):
        if not line or is_detail_line(line):
            continue
        yield parse_directive(line)


def parse_diff(summary: str) -> Result[list[DiffDirective], DiffParseError]:
    """Parse a whole summary into directives in generator order.

    Returns:
        Result[list[DiffDirective], DiffParseError]: Directives ascending over
        old line numbers, or the failure for a line without an operator
    """
    directives: list[DiffDirective] = []
    for result in iter_directives_reversed(summary):
        if isinstance(result, Failure):
            return result
        directive = result.unwrap()
        if directive is not None:
            directives.append(directive)
    directives.reverse()
    return Success(directives)
