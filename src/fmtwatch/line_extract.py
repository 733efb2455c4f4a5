# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Extraction of whole lines from reformatted file content."""

from .diff_parser import LineSpan

NEWLINE = 0x0A


def find_lines(text: bytes, span: LineSpan) -> bytes:
    """Return the bytes of lines ``span.start`` through ``span.end``.

    Lines end at (and include) ``\\n``; trailing bytes after the last newline
    count as a final line. Nothing is trimmed. Spans reaching past the end of
    the text yield whatever the walk covers, possibly ``b""``.

    Args:
        text: Reformatted file content
        span: 1-based inclusive line span

    Returns:
        bytes: The exact slice holding those lines
    """
    start = span.start - 1
    end = span.end
    i = 0
    size = len(text)

    while i < size and start > 0:
        if text[i] == NEWLINE:
            start -= 1
            end -= 1
        i += 1
    start_byte = i

    while i < size and end > 0:
        if text[i] == NEWLINE:
            end -= 1
        i += 1

    return text[start_byte:i]
