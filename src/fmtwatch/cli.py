# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Command-line interface for fmtwatch.

Commands:
- ``watch``: watch acme for saves, reformat and test
- ``replay``: one format-and-replay cycle on a file, without an editor
- ``diff-parse``: show the directives of a normal-format diff
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional

import pydantic
import typer
from returns.io import IOFailure, IOResult, impure_safe
from returns.result import Failure, Result, Success
from returns.unsafe import unsafe_perform_io
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typing_extensions import Annotated

from . import __version__
from .buffer import TextBuffer
from .config import WatchSettings
from .diff_parser import parse_diff
from .errors import ConfigError, FmtwatchError, file_not_found
from .logging_jsonl import JsonlLogger
from .replay import DiffReplayer
from .report import ReportSink, StreamReportWindow
from .session import run_session
from .session_metrics import SessionMetrics
from .tools import SubprocessDiff, SubprocessFormatter, split_command

console = Console(stderr=True)

app = typer.Typer(
    name="fmtwatch",
    help="Reformat files on save and replay the changes into the editor",
    add_completion=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
    pretty_exceptions_enable=False,
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fmtwatch {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[Optional[bool], typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version and exit")] = None
) -> None:
    """Reformat files on save and replay the changes into the editor."""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _load_settings(**overrides: Any) -> Result[WatchSettings, ConfigError]:
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Success(WatchSettings(**values))
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        return Failure(ConfigError(
            message=f"invalid settings: {e}",
            key=".".join(str(part) for part in first["loc"]),
            invalid_value=repr(first.get("input")),
        ))


def _handle_command_result(result: Result[int, Any]) -> int:
    """Map a command result to an exit code."""
    if isinstance(result, Failure):
        error = result.failure()
        if isinstance(error, ConfigError):
            where = f" ({error.key} = {error.invalid_value})" if error.key else ""
            console.print(f"[red]Configuration error{escape(where)}:[/red] {escape(error.message)}")
            return 2
        if isinstance(error, FmtwatchError):
            console.print(f"[red]Error:[/red] {escape(error.message)}")
            return 1
        console.print(f"[red]Unexpected error:[/red] {escape(str(error))}")
        return 3
    return result.unwrap()


@impure_safe
def _execute_sync(main: Callable[[], Awaitable[Result[int, FmtwatchError]]]) -> int:
    """Run an async command; exceptions become IOFailure."""
    return _handle_command_result(asyncio.run(main()))


def _exit_code(result: IOResult[int, Exception]) -> int:
    if isinstance(result, IOFailure):
        console.print(f"[red]Unexpected error:[/red] {escape(str(unsafe_perform_io(result.failure())))}")
        return 3
    return unsafe_perform_io(result.unwrap())


def _finish(exit_code: int) -> None:
    if exit_code != 0:
        raise typer.Exit(exit_code)


def _print_summary(snapshot: dict[str, Any]) -> None:
    table = Table(title="fmtwatch session", show_header=False)
    for key in ("saves", "reformatted", "unchanged", "edits", "aborted", "commands_ok", "commands_failed"):
        table.add_row(key.replace("_", " "), str(snapshot[key]))
    table.add_row("elapsed", f"{snapshot['elapsed']:.1f}s")
    console.print(table)

    messages = snapshot["error_messages"]
    if messages:
        console.print(f"[yellow]Aborted cycles ({len(messages)} shown):[/yellow]")
        for message in messages:
            console.print(f"  {escape(message)}")


def _open_cycle_log(settings: WatchSettings) -> Optional[JsonlLogger]:
    if settings.log_path is None:
        return None
    cycle_log = JsonlLogger(settings.log_path)
    cycle_log.start_fresh()
    return cycle_log


@app.command(name="watch")
def watch_command(
    root: Annotated[Optional[Path], typer.Option("--root", help="Directory to watch (default: from acme's $%)")] = None,
    install: Annotated[bool, typer.Option("-i", "--install", help="Run the install command after tests pass")] = False,
    formatter: Annotated[Optional[str], typer.Option("--formatter", help="Formatter command line, e.g. \"gofmt -s\"")] = None,
    run_after: Annotated[Optional[str], typer.Option("-r", "--run", help="Run command after every successful build")] = None,
    log_path: Annotated[Optional[Path], typer.Option("--log-path", help="JSON Lines log of save cycles")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
) -> None:
    """Watch acme for saved files, reformat them in place and run the tests."""
    loaded = _load_settings(
        root=root,
        formatter=split_command(formatter) if formatter else None,
        install_after=install or None,
        run_after=run_after,
        log_path=log_path,
        log_level=log_level,
    )
    if isinstance(loaded, Failure):
        _finish(_handle_command_result(loaded))
        return
    settings = loaded.unwrap()
    _setup_logging(settings.log_level)

    metrics = SessionMetrics()
    cycle_log = _open_cycle_log(settings)

    async def main() -> Result[int, FmtwatchError]:
        return await run_session(settings, metrics, cycle_log)

    try:
        exit_code = _exit_code(_execute_sync(main))
    except KeyboardInterrupt:
        console.print("\nInterrupted")
        exit_code = 130
    finally:
        if cycle_log:
            cycle_log.close()

    _print_summary(asyncio.run(metrics.get_snapshot()))
    _finish(exit_code)


def _write_atomic(path: Path, content: bytes) -> None:
    """Write file atomically using temp file + rename."""
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(temp_path, path)
    except OSError:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


@app.command(name="replay")
def replay_command(
    file: Annotated[Path, typer.Argument(help="File to format")],
    write: Annotated[bool, typer.Option("--write/--no-write", help="Write the edited buffer back to the file")] = True,
    formatter: Annotated[Optional[str], typer.Option("--formatter", help="Formatter command line, e.g. \"gofmt -s\"")] = None,
) -> None:
    """Format FILE and replay the changes onto an in-memory copy of it."""
    loaded = _load_settings(formatter=split_command(formatter) if formatter else None)
    if isinstance(loaded, Failure):
        _finish(_handle_command_result(loaded))
        return
    settings = loaded.unwrap()
    _setup_logging(settings.log_level)

    async def main() -> Result[int, FmtwatchError]:
        report = ReportSink(StreamReportWindow(sys.stdout.buffer))
        replayer = DiffReplayer(
            formatter=SubprocessFormatter(settings.formatter),
            differ=SubprocessDiff(settings.diff_command),
            report=report,
            fatal_marker=settings.fatal_marker,
        )
        if not file.is_file():
            return Failure(file_not_found(file))
        buffer = TextBuffer(file.read_bytes())
        replayed = await replayer.replay(file, buffer)
        if isinstance(replayed, Failure):
            return replayed

        outcome = replayed.unwrap()
        for directive in outcome.directives:
            console.print(f"  {directive}")
        console.print(f"{file}: {outcome.edits} edit(s), {outcome.skipped} skipped")
        if outcome.changed and write:
            _write_atomic(file, buffer.content)
        return Success(0)

    _finish(_exit_code(_execute_sync(main)))


@app.command(name="diff-parse")
def diff_parse_command(
    file: Annotated[Optional[Path], typer.Argument(help="Diff summary to parse (default: stdin)")] = None,
) -> None:
    """Print the directives of a normal-format diff."""
    text = file.read_text(errors="replace") if file else sys.stdin.read()
    parsed = parse_diff(text)
    if isinstance(parsed, Failure):
        _finish(_handle_command_result(parsed))
        return

    table = Table("op", "old", "new")
    for directive in parsed.unwrap():
        table.add_row(directive.kind.name.lower(), str(directive.old_span), str(directive.new_span))
    Console().print(table)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
