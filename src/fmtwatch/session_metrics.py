# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Counters for one watch session, safe to update from concurrent tasks."""

import asyncio
import time
from typing import Any, Dict, List

MAX_ERROR_MESSAGES = 100


class SessionMetrics:
    """Session-wide counters.

    All methods are async and use asyncio.Lock for synchronization.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._saves = 0
        self._unchanged = 0
        self._reformatted = 0
        self._edits = 0
        self._aborted = 0
        self._commands_ok = 0
        self._commands_failed = 0
        self._error_messages: List[str] = []
        self._start_time = time.time()

    async def record_save(self) -> None:
        async with self._lock:
            self._saves += 1

    async def record_replay(self, edits: int) -> None:
        """Record a completed replay; zero edits means the file was already formatted."""
        async with self._lock:
            if edits:
                self._reformatted += 1
                self._edits += edits
            else:
                self._unchanged += 1

    async def record_abort(self, message: str) -> None:
        async with self._lock:
            self._aborted += 1
            if len(self._error_messages) < MAX_ERROR_MESSAGES:
                self._error_messages.append(message)

    async def record_command(self, ok: bool) -> None:
        async with self._lock:
            if ok:
                self._commands_ok += 1
            else:
                self._commands_failed += 1

    async def get_snapshot(self) -> Dict[str, Any]:
        """Get a consistent copy of all counters."""
        async with self._lock:
            return {
                'saves': self._saves,
                'unchanged': self._unchanged,
                'reformatted': self._reformatted,
                'edits': self._edits,
                'aborted': self._aborted,
                'commands_ok': self._commands_ok,
                'commands_failed': self._commands_failed,
                'error_messages': self._error_messages.copy(),
                'elapsed': time.time() - self._start_time,
            }
