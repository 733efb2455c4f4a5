# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Buffer-edit sinks: the mutable text surfaces that diffs are replayed against.

``BufferSink`` is the protocol the replayer talks to. Addresses follow the
acme conventions: line ``N`` covers the text from the start of line N up to
and including its newline, and "after line N" is the zero-width position at
the end of that line (line 0 being the top of the buffer).
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from returns.result import Failure, Success

from .errors import BufferEditError, EditResult


class BufferSink(Protocol):
    """Protocol for a text buffer that accepts address-based edits."""

    async def select_lines(self, start: int, end: int) -> EditResult:
        """Select lines ``start`` through ``end`` (1-based, inclusive)."""
        ...

    async def select_after(self, line: int) -> EditResult:
        """Select the empty range just after ``line`` (0 = top of buffer)."""
        ...

    async def write_selection(self, data: bytes) -> EditResult:
        """Replace the selection with ``data`` (empty deletes it)."""
        ...

    async def mark_baseline(self) -> EditResult:
        """Start a new undo group for the edits that follow."""
        ...


def _out_of_range(address: str) -> Failure[BufferEditError]:
    return Failure(BufferEditError(
        message=f"address out of range: {address}",
        operation="select",
        address=address
    ))


class TextBuffer:
    """In-memory buffer with acme line addressing.

    Used for replaying a diff onto a file without an editor, and in tests.
    ``undo`` restores the content captured by the last ``mark_baseline``.
    """

    def __init__(self, content: bytes = b""):
        self._data = bytearray(content)
        self._q0 = 0
        self._q1 = 0
        self._baseline: bytes | None = None
        self.edits = 0

    @property
    def content(self) -> bytes:
        return bytes(self._data)

    @property
    def selection(self) -> tuple[int, int]:
        """Current selection as byte offsets."""
        return self._q0, self._q1

    def _line_starts(self) -> list[int]:
        starts = [0]
        starts.extend(i + 1 for i, byte in enumerate(self._data) if byte == 0x0A)
        return starts

    def line_count(self) -> int:
        starts = self._line_starts()
        if starts[-1] == len(self._data):
            return len(starts) - 1
        return len(starts)

    def _line_bounds(self, line: int) -> tuple[int, int]:
        starts = self._line_starts()
        begin = starts[line - 1]
        end = starts[line] if line < len(starts) else len(self._data)
        return begin, end

    async def select_lines(self, start: int, end: int) -> EditResult:
        address = f"{start},{end}"
        if start < 1 or end < start or end > self.line_count():
            return _out_of_range(address)
        self._q0 = self._line_bounds(start)[0]
        self._q1 = self._line_bounds(end)[1]
        return Success(None)

    async def select_after(self, line: int) -> EditResult:
        if line < 0 or line > self.line_count():
            return _out_of_range(f"{line}+#0")
        position = 0 if line == 0 else self._line_bounds(line)[1]
        self._q0 = self._q1 = position
        return Success(None)

    async def write_selection(self, data: bytes) -> EditResult:
        self._data[self._q0:self._q1] = data
        self._q1 = self._q0 + len(data)
        self.edits += 1
        return Success(None)

    async def mark_baseline(self) -> EditResult:
        self._baseline = bytes(self._data)
        return Success(None)

    def undo(self) -> bool:
        """Revert to the last baseline. Returns False if there is none."""
        if self._baseline is None:
            return False
        self._data = bytearray(self._baseline)
        self._q0 = self._q1 = 0
        self._baseline = None
        return True


class LockedBuffer:
    """Wraps a sink so each edit holds the shared report lock."""

    def __init__(self, inner: BufferSink, lock: asyncio.Lock):
        self._inner = inner
        self._lock = lock

    async def select_lines(self, start: int, end: int) -> EditResult:
        async with self._lock:
            return await self._inner.select_lines(start, end)

    async def select_after(self, line: int) -> EditResult:
        async with self._lock:
            return await self._inner.select_after(line)

    async def write_selection(self, data: bytes) -> EditResult:
        async with self._lock:
            return await self._inner.write_selection(data)

    async def mark_baseline(self) -> EditResult:
        async with self._lock:
            return await self._inner.mark_baseline()
