# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
acme editor protocol over the plan9port ``9p`` client.

acme exposes each window as a set of files (``addr``, ``data``, ``body``,
``ctl``, ``event``) and announces window operations on a global ``log`` file.
Every access here is one ``9p read`` or ``9p write`` subprocess; the long
lived streams (``log`` and a window's ``event`` file) are read line by line
from a ``9p read`` that stays running.

acme resets a window's address only when the ``addr`` file is first opened,
so an address written by one ``9p write`` is still in effect for the next
``data`` write.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

from returns.result import Failure, Result, Success

from .errors import BufferEditError, EditResult, EditorError

logger = logging.getLogger(__name__)

EVENT_RE = re.compile(r"^(.)(.)(\d+) (\d+) (\d+) (\d+) ?(.*)$", re.DOTALL)

Operation = Literal["open", "create", "log", "ctl", "read", "write"]


@dataclass(frozen=True)
class SaveEvent:
    """One line of acme's log: ``<window id> <op> <file name>``."""
    window_id: int
    op: str
    name: str

    @classmethod
    def parse(cls, line: str) -> Optional[SaveEvent]:
        parts = line.rstrip("\n").split(" ", 2)
        if len(parts) < 2 or not parts[0].isdigit():
            return None
        name = parts[2] if len(parts) == 3 else ""
        return cls(window_id=int(parts[0]), op=parts[1], name=name)


@dataclass(frozen=True)
class WindowEvent:
    """An event from a window's ``event`` file.

    Attributes:
        origin: Who caused it (E body/tag file write, F other file, K keyboard, M mouse)
        kind: What happened (x/X execute, l/L look, I/D insert/delete in body, ...)
        q0, q1: Character addresses of the action
        flag: Event flag bits
        text: Text of the action, when sent
    """
    origin: str
    kind: str
    q0: int
    q1: int
    flag: int
    text: str

    @classmethod
    def parse(cls, line: str) -> Optional[WindowEvent]:
        match = EVENT_RE.match(line.rstrip("\n"))
        if match is None:
            return None
        origin, kind, q0, q1, flag, _, text = match.groups()
        return cls(origin, kind, int(q0), int(q1), int(flag), text)

    @property
    def is_execute(self) -> bool:
        return self.kind in ("x", "X")

    def reply(self) -> bytes:
        """Message handing the event back to acme for default handling."""
        return f"{self.origin}{self.kind}{self.q0} {self.q1}\n".encode("utf-8")


class Acme:
    """Access to the acme file server through the ``9p`` command."""

    def __init__(self, ninep: str = "9p"):
        self.ninep = ninep

    async def read(self, path: str, operation: Operation = "read") -> Result[bytes, EditorError]:
        return await self._run(["read", path], None, operation)

    async def write(self, path: str, data: bytes, operation: Operation = "write") -> Result[bytes, EditorError]:
        return await self._run(["write", path], data, operation)

    async def _run(self, args: list[str], data: Optional[bytes], operation: Operation) -> Result[bytes, EditorError]:
        command = [self.ninep, *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE if data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return Failure(EditorError(message=f"{' '.join(command)}: {e}", operation=operation))

        stdout, stderr = await process.communicate(data)
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() or f"exit status {process.returncode}"
            return Failure(EditorError(message=f"{' '.join(command)}: {detail}", operation=operation))
        return Success(stdout)

    async def stream(self, path: str, operation: Operation) -> Result[LineStream, EditorError]:
        """Start reading a file that delivers one record per line."""
        command = [self.ninep, "read", path]
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return Failure(EditorError(message=f"{' '.join(command)}: {e}", operation=operation))
        return Success(LineStream(process, path, operation))


class LineStream:
    """A running ``9p read`` whose output is consumed line by line."""

    def __init__(self, process: asyncio.subprocess.Process, path: str, operation: Operation):
        self._process = process
        self.path = path
        self.operation: Operation = operation

    async def readline(self) -> Result[str, EditorError]:
        assert self._process.stdout is not None
        line = await self._process.stdout.readline()
        if not line:
            returncode = await self._process.wait()
            return Failure(EditorError(
                message=f"{self.path}: stream closed (exit status {returncode})",
                operation=self.operation
            ))
        return Success(line.decode("utf-8", errors="replace"))

    async def close(self) -> None:
        if self._process.returncode is None:
            self._process.terminate()
            await self._process.wait()


class AcmeLog:
    """Reader for acme's global ``log`` file."""

    def __init__(self, acme: Acme):
        self.acme = acme
        self._stream: Optional[LineStream] = None

    async def open(self) -> Result[None, EditorError]:
        stream = await self.acme.stream("acme/log", "log")
        if isinstance(stream, Failure):
            return stream
        self._stream = stream.unwrap()
        return Success(None)

    async def read(self) -> Result[SaveEvent, EditorError]:
        """Next well-formed log entry."""
        if self._stream is None:
            opened = await self.open()
            if isinstance(opened, Failure):
                return opened
        assert self._stream is not None
        while True:
            line = await self._stream.readline()
            if isinstance(line, Failure):
                return line
            event = SaveEvent.parse(line.unwrap())
            if event is not None:
                return Success(event)
            logger.debug("ignoring log line %r", line.unwrap())

    async def close(self) -> None:
        if self._stream is not None:
            await self._stream.close()
            self._stream = None


class AcmeWindow:
    """One acme window, usable as a buffer sink and as a report window."""

    def __init__(self, acme: Acme, window_id: int):
        self.acme = acme
        self.id = window_id
        self._events: Optional[LineStream] = None

    @classmethod
    async def create(cls, acme: Acme) -> Result[AcmeWindow, EditorError]:
        """Open a new window (reading ``new/ctl`` creates it)."""
        ctl = await acme.read("acme/new/ctl", "create")
        if isinstance(ctl, Failure):
            return ctl
        fields = ctl.unwrap().split()
        if not fields or not fields[0].isdigit():
            return Failure(EditorError(message=f"unexpected ctl line {ctl.unwrap()!r}", operation="create"))
        return Success(cls(acme, int(fields[0])))

    @classmethod
    async def open(cls, acme: Acme, window_id: int) -> Result[AcmeWindow, EditorError]:
        """Attach to an existing window, checking that it exists."""
        ctl = await acme.read(f"acme/{window_id}/ctl", "open")
        if isinstance(ctl, Failure):
            return ctl
        return Success(cls(acme, window_id))

    def _file(self, name: str) -> str:
        return f"acme/{self.id}/{name}"

    async def ctl(self, message: str) -> Result[None, EditorError]:
        written = await self.acme.write(self._file("ctl"), message.encode("utf-8"), "ctl")
        return written.map(lambda _: None)

    async def set_name(self, name: str) -> Result[None, EditorError]:
        return await self.ctl(f"name {name}")

    async def delete(self) -> Result[None, EditorError]:
        return await self.ctl("delete")

    async def _addr(self, address: str) -> EditResult:
        written = await self.acme.write(self._file("addr"), address.encode("utf-8"))
        if isinstance(written, Failure):
            return Failure(BufferEditError(
                message=written.failure().message,
                operation="select",
                address=address
            ))
        return Success(None)

    # BufferSink

    async def select_lines(self, start: int, end: int) -> EditResult:
        return await self._addr(f"{start},{end}")

    async def select_after(self, line: int) -> EditResult:
        return await self._addr(f"{line}+#0")

    async def write_selection(self, data: bytes) -> EditResult:
        written = await self.acme.write(self._file("data"), data)
        if isinstance(written, Failure):
            return Failure(BufferEditError(message=written.failure().message, operation="write"))
        return Success(None)

    async def mark_baseline(self) -> EditResult:
        for message in ("mark", "nomark"):
            result = await self.ctl(message)
            if isinstance(result, Failure):
                return Failure(BufferEditError(message=result.failure().message, operation="mark"))
        return Success(None)

    # ReportWindow

    async def clear_body(self) -> Result[None, EditorError]:
        selected = await self.acme.write(self._file("addr"), b",")
        if isinstance(selected, Failure):
            return selected
        written = await self.acme.write(self._file("data"), b"")
        return written.map(lambda _: None)

    async def append_body(self, data: bytes) -> Result[None, EditorError]:
        written = await self.acme.write(self._file("body"), data)
        return written.map(lambda _: None)

    async def mark_clean(self) -> Result[None, EditorError]:
        return await self.ctl("clean")

    # Events

    async def read_event(self) -> Result[WindowEvent, EditorError]:
        if self._events is None:
            stream = await self.acme.stream(self._file("event"), "read")
            if isinstance(stream, Failure):
                return stream
            self._events = stream.unwrap()
        while True:
            line = await self._events.readline()
            if isinstance(line, Failure):
                return line
            event = WindowEvent.parse(line.unwrap())
            if event is not None:
                return Success(event)

    async def write_event(self, event: WindowEvent) -> Result[None, EditorError]:
        written = await self.acme.write(self._file("event"), event.reply())
        return written.map(lambda _: None)

    async def close(self) -> None:
        if self._events is not None:
            await self._events.close()
            self._events = None
