# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Format a saved file and replay the formatter's changes onto the open buffer.

Instead of overwriting the whole buffer, the differences between the file on
disk and the formatter output are turned into range replacements. They are
applied from the bottom of the file upwards, so the line numbers of every
directive still pending stay valid.

A replay that fails part way keeps the edits already applied; there is no
rollback. The host editor's undo covers the whole group, since the buffer is
given a fresh undo baseline before the first edit.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os
from returns.result import Failure, Result, Success

from .buffer import BufferSink
from .diff_parser import DiffDirective, DirectiveKind, iter_directives_reversed
from .errors import BytesResult, EditResult, FileError, FmtwatchError, ToolError, file_not_found
from .line_extract import find_lines
from .logging_jsonl import JsonlLogger
from .report import ReportSink
from .tools import DiffGenerator, FormatResult, Formatter

logger = logging.getLogger(__name__)

DEFAULT_FATAL_MARKER = "fatal error"
TEMP_PREFIX = "fmtwatch"


class ReplayState(Enum):
    """Progress of one format-and-replay cycle."""
    STARTED = "started"
    FORMATTED = "formatted"
    COMPARED = "compared"
    DIFF_GENERATED = "diff_generated"
    REPLAYING = "replaying"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ReplayOutcome:
    """Result of a completed replay.

    Attributes:
        path: File that was formatted
        state: Always DONE for a successful replay
        edits: Number of buffer writes performed
        directives: Directives applied, in application order (bottom up)
        skipped: Summary lines skipped because a span did not parse
    """
    path: Path
    state: ReplayState
    edits: int = 0
    directives: tuple[DiffDirective, ...] = field(default_factory=tuple)
    skipped: int = 0

    @property
    def changed(self) -> bool:
        return self.edits > 0


async def read_bytes(path: Path) -> BytesResult:
    """Read a whole file as bytes."""
    try:
        async with aiofiles.open(path, mode="rb") as f:
            return Success(await f.read())
    except FileNotFoundError:
        return Failure(file_not_found(path))
    except OSError as e:
        return Failure(FileError(
            message=f"Failed to read {path}: {e}",
            path=path,
            operation="read",
            original_error=str(e)
        ))


class DiffReplayer:
    """Runs the format, compare, diff and replay steps for one file at a time."""

    def __init__(
        self,
        formatter: Formatter,
        differ: DiffGenerator,
        report: ReportSink,
        fatal_marker: str = DEFAULT_FATAL_MARKER,
        cycle_log: Optional[JsonlLogger] = None,
        temp_dir: Optional[Path] = None,
    ):
        self.formatter = formatter
        self.differ = differ
        self.report = report
        self.fatal_marker = fatal_marker.encode("utf-8")
        self.cycle_log = cycle_log
        self.temp_dir = temp_dir
        self.state = ReplayState.STARTED

    async def replay(self, path: Path, buffer: BufferSink) -> Result[ReplayOutcome, FmtwatchError]:
        """Format ``path`` and bring ``buffer`` in line with the result.

        Args:
            path: The saved file; ``buffer`` must hold the same content
            buffer: Sink receiving the edits

        Returns:
            Result[ReplayOutcome, FmtwatchError]: DONE outcome, or the error
            that aborted the cycle (``error.fatal`` tells whether the whole
            session should stop)
        """
        self.state = ReplayState.STARTED
        result = await self._replay(path, buffer)
        if isinstance(result, Failure):
            self.state = ReplayState.ABORTED
            self._record(path, error=str(result.failure()))
        else:
            self.state = ReplayState.DONE
            outcome = result.unwrap()
            self._record(path, edits=outcome.edits, skipped=outcome.skipped)
        return result

    async def _replay(self, path: Path, buffer: BufferSink) -> Result[ReplayOutcome, FmtwatchError]:
        original = await read_bytes(path)
        if isinstance(original, Failure):
            return original
        old = original.unwrap()

        formatted = await self.formatter.format(path)
        if not formatted.ok:
            return await self._report_format_failure(path, formatted)
        self.state = ReplayState.FORMATTED
        new = formatted.content

        self.state = ReplayState.COMPARED
        if old == new:
            return Success(ReplayOutcome(path=path, state=ReplayState.DONE))

        summary = await self._generate_diff(path, new)
        if isinstance(summary, Failure):
            return summary
        self.state = ReplayState.DIFF_GENERATED

        return await self.apply_summary(path, summary.unwrap(), new, buffer)

    async def apply_summary(
        self,
        path: Path,
        summary: bytes,
        new: bytes,
        buffer: BufferSink,
    ) -> Result[ReplayOutcome, FmtwatchError]:
        """Replay a diff summary against ``buffer`` using lines of ``new``."""
        self.state = ReplayState.REPLAYING
        baseline = await buffer.mark_baseline()
        if isinstance(baseline, Failure):
            return baseline

        applied: list[DiffDirective] = []
        skipped = 0
        for parsed in iter_directives_reversed(summary.decode("utf-8", errors="replace")):
            if isinstance(parsed, Failure):
                logger.error("%s", parsed.failure().message)
                return parsed

            directive = parsed.unwrap()
            if directive is None:
                skipped += 1
                continue

            edit = await self._apply(directive, new, buffer)
            if isinstance(edit, Failure):
                logger.error("%s: %s: %s", path, directive, edit.failure().message)
                return edit
            applied.append(directive)

        return Success(ReplayOutcome(
            path=path,
            state=ReplayState.DONE,
            edits=len(applied),
            directives=tuple(applied),
            skipped=skipped,
        ))

    async def _apply(self, directive: DiffDirective, new: bytes, buffer: BufferSink) -> EditResult:
        old_span = directive.old_span
        if directive.kind is DirectiveKind.APPEND:
            selected = await buffer.select_after(old_span.start)
        else:
            selected = await buffer.select_lines(old_span.start, old_span.end)
        if isinstance(selected, Failure):
            return selected

        if directive.kind is DirectiveKind.DELETE:
            return await buffer.write_selection(b"")
        return await buffer.write_selection(find_lines(new, directive.new_span))

    async def _report_format_failure(
        self,
        path: Path,
        formatted: FormatResult,
    ) -> Result[ReplayOutcome, FmtwatchError]:
        command, error, output = formatted.command, formatted.error, formatted.output
        # Fatal formatter errors are shown with the command; syntax errors as-is
        if self.fatal_marker in output:
            text = f"{command} {path}: {error}\n".encode("utf-8") + output
        else:
            text = output
        written = await self.report.write(text)
        if isinstance(written, Failure):
            return written
        return Failure(ToolError(
            message=f"{command} {path}: {error}",
            command=command,
            output=output.decode("utf-8", errors="replace"),
            exit_code=formatted.exit_code,
        ))

    async def _generate_diff(self, path: Path, new: bytes) -> Result[bytes, FileError]:
        try:
            fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.temp_dir)
        except OSError as e:
            return Failure(FileError(
                message=f"Failed to create temporary file: {e}",
                path=Path(self.temp_dir or tempfile.gettempdir()),
                operation="create",
                original_error=str(e)
            ))

        tmp = Path(name)
        try:
            async with aiofiles.open(fd, mode="wb") as f:
                await f.write(new)
            return Success(await self.differ.diff(path, tmp))
        except OSError as e:
            return Failure(FileError(
                message=f"Failed to write temporary file {tmp}: {e}",
                path=tmp,
                operation="write",
                original_error=str(e)
            ))
        finally:
            try:
                await aiofiles.os.remove(tmp)
            except OSError as e:
                logger.warning("could not remove %s: %s", tmp, e)

    def _record(self, path: Path, **fields: Any) -> None:
        if self.cycle_log:
            self.cycle_log.write({
                'ev': 'replay',
                'path': str(path),
                'state': self.state.value,
                **fields,
            })
