# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Wiring of a watch session against a running acme.

Two tasks run side by side and share only the report sink:

- the watch loop reads acme's log and runs save cycles,
- the window loop serves the report window's events (so acme keeps its
  default behaviour) and ends the session when the window is deleted.

Whichever task finishes first cancels the other.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from returns.result import Failure, Result, Success

from .acme import Acme, AcmeLog, AcmeWindow
from .buffer import BufferSink
from .config import WatchSettings
from .errors import EditorError, FmtwatchError
from .logging_jsonl import JsonlLogger
from .replay import DiffReplayer
from .report import ReportSink
from .session_metrics import SessionMetrics
from .tools import CommandRunner, SubprocessDiff, SubprocessFormatter
from .watcher import SaveWatcher

logger = logging.getLogger(__name__)


async def serve_window_events(window: AcmeWindow) -> Result[int, FmtwatchError]:
    """Hand every event back to acme; delete the window on ``Del``."""
    while True:
        read = await window.read_event()
        if isinstance(read, Failure):
            logger.info("report window closed: %s", read.failure().message)
            return Success(0)

        event = read.unwrap()
        if event.is_execute and event.text == "Del":
            deleted = await window.delete()
            if isinstance(deleted, Failure):
                logger.warning("delete report window: %s", deleted.failure().message)
            return Success(0)

        replied = await window.write_event(event)
        if isinstance(replied, Failure):
            logger.warning("write event: %s", replied.failure().message)


async def _open_report(acme: Acme, settings: WatchSettings) -> Result[AcmeWindow, EditorError]:
    created = await AcmeWindow.create(acme)
    if isinstance(created, Failure):
        return created
    window = created.unwrap()

    for step in (window.set_name(str(settings.report_path)), window.mark_clean()):
        result = await step
        if isinstance(result, Failure):
            return result
    return Success(window)


def build_watcher(
    settings: WatchSettings,
    report: ReportSink,
    acme: Acme,
    metrics: SessionMetrics,
    cycle_log: Optional[JsonlLogger] = None,
) -> SaveWatcher:
    """Assemble the save-cycle components from the settings."""
    replayer = DiffReplayer(
        formatter=SubprocessFormatter(settings.formatter),
        differ=SubprocessDiff(settings.diff_command),
        report=report,
        fatal_marker=settings.fatal_marker,
        cycle_log=cycle_log,
    )
    runner = CommandRunner(report, cwd=settings.root, shell=settings.shell, cycle_log=cycle_log)

    async def open_buffer(window_id: int) -> Result[BufferSink, EditorError]:
        return await AcmeWindow.open(acme, window_id)

    return SaveWatcher(
        settings=settings,
        report=report,
        replayer=replayer,
        runner=runner,
        open_buffer=open_buffer,
        metrics=metrics,
        cycle_log=cycle_log,
    )


async def run_session(
    settings: WatchSettings,
    metrics: SessionMetrics,
    cycle_log: Optional[JsonlLogger] = None,
) -> Result[int, FmtwatchError]:
    """Watch acme until the report window goes away or a fatal error occurs."""
    # Without PWD the go tools resolve the module from the real directory
    os.environ.pop("PWD", None)

    acme = Acme(settings.ninep)
    opened = await _open_report(acme, settings)
    if isinstance(opened, Failure):
        return opened
    window = opened.unwrap()

    report = ReportSink(window)
    watcher = build_watcher(settings, report, acme, metrics, cycle_log)
    log = AcmeLog(acme)
    log_opened = await log.open()
    if isinstance(log_opened, Failure):
        return log_opened

    logger.info("watching %s for *%s saves", settings.root, settings.extension)
    watch_task = asyncio.create_task(watcher.run(log), name="watch")
    window_task = asyncio.create_task(serve_window_events(window), name="window-events")
    try:
        done, pending = await asyncio.wait({watch_task, window_task}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        finished = watch_task if watch_task in done else window_task
        return finished.result()
    finally:
        await log.close()
        await window.close()
