# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Unit tests for the report window event loop and session wiring."""

from pathlib import Path

import pytest
from returns.result import Failure, Success

from fmtwatch.acme import Acme, WindowEvent
from fmtwatch.config import WatchSettings
from fmtwatch.errors import EditorError
from fmtwatch.session import build_watcher, serve_window_events
from fmtwatch.session_metrics import SessionMetrics
from fmtwatch.tools import SubprocessDiff, SubprocessFormatter


class ScriptedWindow:
    """Window whose event file yields a fixed list of events."""

    def __init__(self, events):
        self.events = list(events)
        self.replied = []
        self.deleted = False

    async def read_event(self):
        if not self.events:
            return Failure(EditorError(message="event file closed", operation="read"))
        return Success(self.events.pop(0))

    async def write_event(self, event):
        self.replied.append(event)
        return Success(None)

    async def delete(self):
        self.deleted = True
        return Success(None)


class TestServeWindowEvents:

    @pytest.mark.asyncio
    async def test_events_are_handed_back(self):
        look = WindowEvent("M", "l", 0, 4, 0, "main")
        get = WindowEvent("M", "x", 5, 8, 0, "Get")
        window = ScriptedWindow([look, get])

        result = await serve_window_events(window)

        assert result == Success(0)
        assert window.replied == [look, get]
        assert not window.deleted

    @pytest.mark.asyncio
    async def test_del_deletes_the_window(self):
        window = ScriptedWindow([
            WindowEvent("M", "x", 0, 3, 0, "Del"),
            WindowEvent("M", "x", 5, 8, 0, "Get"),
        ])

        result = await serve_window_events(window)

        assert result == Success(0)
        assert window.deleted
        assert window.replied == []
        assert len(window.events) == 1


def test_build_watcher_uses_settings(report, tmp_path):
    settings = WatchSettings(
        root=tmp_path,
        formatter=["gofmt", "-s"],
        diff_command=["diff", "-b"],
        fatal_marker="panic",
        shell="sh",
    )

    watcher = build_watcher(settings, report, Acme("9p"), SessionMetrics())

    formatter = watcher.replayer.formatter
    assert isinstance(formatter, SubprocessFormatter)
    assert formatter.command == ["gofmt", "-s"]
    assert isinstance(watcher.replayer.differ, SubprocessDiff)
    assert watcher.replayer.differ.command == ["diff", "-b"]
    assert watcher.replayer.fatal_marker == b"panic"
    assert watcher.runner.cwd == Path(tmp_path)
    assert watcher.runner.report is report
