# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Unit tests for SessionMetrics, including concurrent updates."""

import asyncio

import pytest

from fmtwatch.session_metrics import MAX_ERROR_MESSAGES, SessionMetrics


class TestSessionMetrics:

    @pytest.mark.asyncio
    async def test_initial_snapshot(self):
        snapshot = await SessionMetrics().get_snapshot()

        assert snapshot["saves"] == 0
        assert snapshot["edits"] == 0
        assert snapshot["error_messages"] == []
        assert snapshot["elapsed"] >= 0

    @pytest.mark.asyncio
    async def test_replay_counts(self):
        metrics = SessionMetrics()

        await metrics.record_replay(0)
        await metrics.record_replay(3)
        await metrics.record_replay(2)

        snapshot = await metrics.get_snapshot()
        assert snapshot["unchanged"] == 1
        assert snapshot["reformatted"] == 2
        assert snapshot["edits"] == 5

    @pytest.mark.asyncio
    async def test_aborts_keep_messages(self):
        metrics = SessionMetrics()

        await metrics.record_abort("/p/main.go: goimports exit status 2")

        snapshot = await metrics.get_snapshot()
        assert snapshot["aborted"] == 1
        assert snapshot["error_messages"] == ["/p/main.go: goimports exit status 2"]

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self):
        metrics = SessionMetrics()
        snapshot = await metrics.get_snapshot()

        snapshot["error_messages"].append("changed")

        assert (await metrics.get_snapshot())["error_messages"] == []

    @pytest.mark.asyncio
    async def test_concurrent_updates(self):
        metrics = SessionMetrics()

        async def cycle(i):
            await metrics.record_save()
            await metrics.record_command(i % 2 == 0)

        await asyncio.gather(*(cycle(i) for i in range(100)))

        snapshot = await metrics.get_snapshot()
        assert snapshot["saves"] == 100
        assert snapshot["commands_ok"] == 50
        assert snapshot["commands_failed"] == 50

    @pytest.mark.asyncio
    async def test_error_messages_are_capped(self):
        metrics = SessionMetrics()

        for i in range(MAX_ERROR_MESSAGES + 5):
            await metrics.record_abort(f"cycle {i}")

        snapshot = await metrics.get_snapshot()
        assert snapshot["aborted"] == MAX_ERROR_MESSAGES + 5
        assert len(snapshot["error_messages"]) == MAX_ERROR_MESSAGES
