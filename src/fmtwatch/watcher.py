# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
The save cycle: what happens each time a watched file is put.

1. clear the report window
2. format the file and replay the changes onto its window
3. run the tests for the file's package
4. optionally install, optionally run the user's command
5. write the ``$`` prompt line

Each step runs only if the previous one succeeded. Failures of a step end
the cycle; only process-fatal errors (see ``FmtwatchError.fatal``) end the
watch loop.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, Protocol

from returns.result import Failure, Result, Success

from .acme import SaveEvent
from .buffer import BufferSink, LockedBuffer
from .config import WatchSettings
from .errors import EditorError, FmtwatchError
from .logging_jsonl import JsonlLogger
from .replay import DiffReplayer
from .report import ReportSink
from .session_metrics import SessionMetrics
from .tools import CommandRunner, expand_command

logger = logging.getLogger(__name__)

SAVE_OP = "put"

BufferOpener = Callable[[int], Awaitable[Result[BufferSink, EditorError]]]


class EventSource(Protocol):
    """Stream of editor log entries."""

    async def read(self) -> Result[SaveEvent, EditorError]:
        ...


class SaveWatcher:
    """Runs a save cycle for every qualifying save event."""

    def __init__(
        self,
        settings: WatchSettings,
        report: ReportSink,
        replayer: DiffReplayer,
        runner: CommandRunner,
        open_buffer: BufferOpener,
        metrics: Optional[SessionMetrics] = None,
        cycle_log: Optional[JsonlLogger] = None,
    ):
        self.settings = settings
        self.report = report
        self.replayer = replayer
        self.runner = runner
        self.open_buffer = open_buffer
        self.metrics = metrics or SessionMetrics()
        self.cycle_log = cycle_log

    def should_handle(self, event: SaveEvent) -> bool:
        return event.op == SAVE_OP and self.settings.watches(event.name)

    async def run(self, events: EventSource) -> Result[int, FmtwatchError]:
        """Handle events until the event source or a cycle fails fatally."""
        while True:
            read = await events.read()
            if isinstance(read, Failure):
                return read

            event = read.unwrap()
            if not self.should_handle(event):
                continue

            handled = await self.handle_save(event)
            if isinstance(handled, Failure):
                return handled

    async def handle_save(self, event: SaveEvent) -> Result[bool, FmtwatchError]:
        """Run one save cycle.

        Returns:
            Success(True) if every step passed, Success(False) if a step
            failed, Failure for a process-fatal error
        """
        await self.metrics.record_save()
        if self.cycle_log:
            self.cycle_log.write({'ev': 'save', 'window': event.window_id, 'path': event.name})

        cleared = await self.report.clear()
        if isinstance(cleared, Failure):
            return cleared

        result = await self._cycle(event)

        prompt = await self.report.prompt()
        if isinstance(prompt, Failure):
            return prompt
        return result

    async def _cycle(self, event: SaveEvent) -> Result[bool, FmtwatchError]:
        opened = await self.open_buffer(event.window_id)
        if isinstance(opened, Failure):
            return opened
        buffer = LockedBuffer(opened.unwrap(), self.report.lock)

        replayed = await self.replayer.replay(Path(event.name), buffer)
        if isinstance(replayed, Failure):
            error = replayed.failure()
            await self.metrics.record_abort(f"{event.name}: {error.message}")
            if error.fatal:
                logger.error("%s: %s", event.name, error.message)
                return replayed
            return Success(False)
        await self.metrics.record_replay(replayed.unwrap().edits)

        package = self.settings.package_of(event.name)
        if package is None:
            return Success(True)

        return await self._build_steps(package)

    async def _build_steps(self, package: str) -> Result[bool, FmtwatchError]:
        test = expand_command(self.settings.test_command, package=package)
        ok = await self._step(self.runner.run(*test))
        if ok != Success(True):
            return ok

        if self.settings.install_after:
            ok = await self._step(self.runner.run(*self.settings.install_command))
            if ok != Success(True):
                return ok

        if self.settings.run_after:
            ok = await self._step(self.runner.run_shell(self.settings.run_after))
            if ok != Success(True):
                return ok

        return Success(True)

    async def _step(self, running: Awaitable[Result[bool, EditorError]]) -> Result[bool, FmtwatchError]:
        result = await running
        if isinstance(result, Success):
            await self.metrics.record_command(result.unwrap())
        return result
