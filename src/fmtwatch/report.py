# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
The report region: where formatter, diff and test output is shown.

All writers go through ``ReportSink``, which holds an asyncio.Lock so that
clearing, writing and marking the region clean never interleave between the
save-cycle task and the window event task.
"""

from __future__ import annotations

import asyncio
import re
from typing import BinaryIO, Protocol

from returns.result import Failure, Result, Success

from .errors import EditorError

# Any single character followed by backspace, or an ANSI CSI sequence.
TERMINAL_RE = re.compile(rb".\x08|\x1b\[[0-9;?]+[A-Za-z]")


def strip_terminal(data: bytes) -> tuple[bytes, int]:
    """Remove overstrike and ANSI control sequences.

    Returns:
        The cleaned bytes and the number of bytes removed
    """
    cleaned = TERMINAL_RE.sub(b"", data)
    return cleaned, len(data) - len(cleaned)


# Bytes at the end of a chunk that may belong to a sequence.
PARTIAL_RE = re.compile(rb"(?:\x1b(?:\[[0-9;?]*[A-Za-z]?)?|.\x08?)\Z")


class TerminalFilter:
    """Holds back the tail of a chunk that could start a terminal sequence.

    Output read in fixed-size chunks can split an overstrike pair or an ANSI
    sequence. ``feed`` returns the part that is safe to strip now and keeps
    the rest for the next chunk; ``flush`` returns what is left at EOF.
    """

    def __init__(self):
        self._pending = b""

    def feed(self, chunk: bytes) -> bytes:
        data = self._pending + chunk
        match = PARTIAL_RE.search(data)
        cut = match.start() if match else len(data)
        self._pending = data[cut:]
        return data[:cut]

    def flush(self) -> bytes:
        data, self._pending = self._pending, b""
        return data


class ReportWindow(Protocol):
    """Operations the report sink needs from the window it writes to."""

    async def clear_body(self) -> Result[None, EditorError]:
        ...

    async def append_body(self, data: bytes) -> Result[None, EditorError]:
        ...

    async def mark_clean(self) -> Result[None, EditorError]:
        ...


class StreamReportWindow:
    """Report window backed by a binary stream such as stdout."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    async def clear_body(self) -> Result[None, EditorError]:
        return Success(None)

    async def append_body(self, data: bytes) -> Result[None, EditorError]:
        try:
            self._stream.write(data)
            self._stream.flush()
        except OSError as e:
            return Failure(EditorError(message=f"report write failed: {e}", operation="write"))
        return Success(None)

    async def mark_clean(self) -> Result[None, EditorError]:
        return Success(None)


class ReportSink:
    """Mutex-guarded writer for the report window."""

    def __init__(self, window: ReportWindow):
        self.window = window
        self.lock = asyncio.Lock()

    async def clear(self) -> Result[None, EditorError]:
        """Empty the report region and mark it clean."""
        async with self.lock:
            result = await self.window.clear_body()
            if isinstance(result, Failure):
                return result
            return await self.window.mark_clean()

    async def write(self, data: bytes | str) -> Result[int, EditorError]:
        """Append output with terminal sequences stripped.

        Returns:
            Result[int, EditorError]: Number of input bytes consumed, which
            includes the stripped ones
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        cleaned, _ = strip_terminal(data)
        async with self.lock:
            result = await self.window.append_body(cleaned)
            if isinstance(result, Failure):
                return result
            clean = await self.window.mark_clean()
            if isinstance(clean, Failure):
                return clean
        return Success(len(data))

    async def prompt(self) -> Result[int, EditorError]:
        """Write the end-of-cycle ``$`` line."""
        return await self.write(b"$\n")
