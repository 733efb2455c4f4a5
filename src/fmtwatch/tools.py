# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
External tools: the formatter, the diff generator and build/test commands.

All subprocesses are started with argument lists (never ``shell=True``) and
without timeouts; a hung tool holds the save cycle until it exits.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from returns.future import future_safe
from returns.io import IOFailure
from returns.result import Failure, Result, Success
from returns.unsafe import unsafe_perform_io

from .errors import EditorError
from .logging_jsonl import JsonlLogger
from .report import ReportSink, TerminalFilter

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


@dataclass(frozen=True)
class FormatResult:
    """Outcome of running the formatter on one file.

    Attributes:
        content: Reformatted file content (stdout), valid when ok
        ok: Whether the formatter exited successfully
        output: Combined stdout and stderr, shown on failure
        error: Short description of the failure ("exit status 2", ...)
        command: Command line that was run, for diagnostics
        exit_code: Exit status, None if the formatter could not be started
    """
    content: bytes
    ok: bool
    output: bytes = b""
    error: str = ""
    command: str = ""
    exit_code: Optional[int] = None


class Formatter(Protocol):
    async def format(self, path: Path) -> FormatResult:
        ...


class DiffGenerator(Protocol):
    async def diff(self, old_path: Path, new_path: Path) -> bytes:
        ...


def command_line(command: Sequence[str]) -> str:
    return " ".join(command)


@future_safe
async def _capture(command: Sequence[str]) -> tuple[int, bytes, bytes]:
    """Run a command to completion, capturing stdout and stderr separately."""
    process = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return process.returncode if process.returncode is not None else -1, stdout, stderr


class SubprocessFormatter:
    """Formatter that prints the reformatted file on stdout (goimports, gofmt)."""

    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    async def format(self, path: Path) -> FormatResult:
        result = await _capture([*self.command, str(path)])
        name = command_line(self.command)

        if isinstance(result, IOFailure):
            exc = unsafe_perform_io(result.failure())
            return FormatResult(content=b"", ok=False, error=str(exc), command=name)

        returncode, stdout, stderr = unsafe_perform_io(result.unwrap())
        if returncode != 0:
            return FormatResult(
                content=b"",
                ok=False,
                output=stdout + stderr,
                error=f"exit status {returncode}",
                command=name,
                exit_code=returncode,
            )
        return FormatResult(content=stdout, ok=True, output=stderr, command=name)


class SubprocessDiff:
    """Classic line diff (``diff old new``) producing a normal-format summary.

    ``diff`` exits 1 when the files differ, so the exit status is ignored.
    A tool that cannot be started yields an empty summary.
    """

    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    async def diff(self, old_path: Path, new_path: Path) -> bytes:
        result = await _capture([*self.command, str(old_path), str(new_path)])

        if isinstance(result, IOFailure):
            exc = unsafe_perform_io(result.failure())
            logger.warning("%s: %s", command_line(self.command), exc)
            return b""

        _, stdout, stderr = unsafe_perform_io(result.unwrap())
        return stdout + stderr


class CommandRunner:
    """Runs build/test commands, streaming their output into the report.

    Each run writes ``$ <command line>`` first. On failure it writes
    ``<command line>: <error>`` and returns Success(False). Failure(...) is
    reserved for a report window that can no longer be written.
    """

    def __init__(
        self,
        report: ReportSink,
        cwd: Optional[Path] = None,
        shell: str = "sh",
        cycle_log: Optional[JsonlLogger] = None,
    ):
        self.report = report
        self.cwd = cwd
        self.shell = shell
        self.cycle_log = cycle_log

    async def run(self, name: str, *args: str) -> Result[bool, EditorError]:
        """Run ``name args...``."""
        return await self._run([name, *args], command_line([name, *args]))

    async def run_shell(self, command: str) -> Result[bool, EditorError]:
        """Run a user-supplied command string through the configured shell."""
        return await self._run([self.shell, "-c", command], command)

    async def _run(self, argv: list[str], display: str) -> Result[bool, EditorError]:
        header = await self.report.write(f"$ {display}\n")
        if isinstance(header, Failure):
            return header

        error = await self._stream(argv)
        if isinstance(error, Failure):
            return error

        message = error.unwrap()
        self._log(display, message)
        if message is None:
            return Success(True)

        written = await self.report.write(f"{display}: {message}\n")
        if isinstance(written, Failure):
            return written
        return Success(False)

    async def _stream(self, argv: list[str]) -> Result[Optional[str], EditorError]:
        """Copy combined output to the report.

        Returns:
            Success(None) when the command exited 0, Success(error text)
            otherwise, or Failure if the report could not be written
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self.cwd,
            )
        except OSError as e:
            return Success(str(e))

        assert process.stdout is not None
        pending = TerminalFilter()
        while chunk := await process.stdout.read(READ_CHUNK):
            written = await self._write_output(pending.feed(chunk))
            if isinstance(written, Failure):
                process.kill()
                await process.wait()
                return written

        written = await self._write_output(pending.flush())
        if isinstance(written, Failure):
            return written

        returncode = await process.wait()
        if returncode != 0:
            return Success(f"exit status {returncode}")
        return Success(None)

    async def _write_output(self, data: bytes) -> Result[int, EditorError]:
        if not data:
            return Success(0)
        return await self.report.write(data)

    def _log(self, display: str, error: Optional[str]) -> None:
        if self.cycle_log:
            self.cycle_log.write({
                'ev': 'command',
                'cmd': display,
                'ok': error is None,
                'error': error,
            })


def expand_command(template: Sequence[str], **values: str) -> list[str]:
    """Substitute ``{name}`` placeholders in each argument of a command."""
    return [arg.format(**values) for arg in template]


def split_command(text: str) -> list[str]:
    """Split a command given as one string (CLI/env) into arguments."""
    return shlex.split(text)
