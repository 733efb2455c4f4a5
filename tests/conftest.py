# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Shared pytest configuration and fixtures for the fmtwatch test suite.

Fixtures defined here are automatically available to all tests without
explicit imports. The fakes stand in for the external collaborators (the
formatter, the diff tool and the report window) so the core can be tested
without goimports, diff or acme installed.
"""

import difflib
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from returns.result import Failure, Success

# Add src to path for imports during testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fmtwatch.errors import EditorError
from fmtwatch.report import ReportSink
from fmtwatch.tools import FormatResult


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (runs external tools)"
    )


# ============================================================================
# Normal-format diff generation
# ============================================================================

def _span(first: int, last: int) -> str:
    return str(first) if first == last else f"{first},{last}"


def _detail(prefix: str, lines: List[str]) -> List[str]:
    return [prefix + (line if line.endswith("\n") else line + "\n") for line in lines]


def normal_diff(old: bytes, new: bytes) -> bytes:
    """Produce the summary ``diff old new`` would print, using difflib.

    Args:
        old: Original text
        new: Reformatted text

    Returns:
        bytes: Classic diff output (directive lines plus ``<``/``---``/``>`` lines)
    """
    a = old.decode().splitlines(keepends=True)
    b = new.decode().splitlines(keepends=True)
    out: List[str] = []
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag == "replace":
            out.append(f"{_span(i1 + 1, i2)}c{_span(j1 + 1, j2)}\n")
            out.extend(_detail("< ", a[i1:i2]))
            out.append("---\n")
            out.extend(_detail("> ", b[j1:j2]))
        elif tag == "delete":
            out.append(f"{_span(i1 + 1, i2)}d{j1}\n")
            out.extend(_detail("< ", a[i1:i2]))
        elif tag == "insert":
            out.append(f"{i1}a{_span(j1 + 1, j2)}\n")
            out.extend(_detail("> ", b[j1:j2]))
    return "".join(out).encode()


@pytest.fixture
def make_normal_diff() -> Callable[[bytes, bytes], bytes]:
    """The difflib-based normal diff generator."""
    return normal_diff


# ============================================================================
# Fake collaborators
# ============================================================================

class FakeFormatter:
    """Formatter returning a fixed result and recording the paths it saw."""

    def __init__(self, result: FormatResult):
        self.result = result
        self.calls: List[Path] = []

    async def format(self, path: Path) -> FormatResult:
        self.calls.append(path)
        return self.result


class DifflibDiff:
    """Diff generator reading both files and diffing them with difflib."""

    def __init__(self):
        self.calls: List[tuple] = []

    async def diff(self, old_path: Path, new_path: Path) -> bytes:
        self.calls.append((old_path, new_path))
        return normal_diff(old_path.read_bytes(), new_path.read_bytes())


class FixedDiff:
    """Diff generator returning a canned summary."""

    def __init__(self, summary: bytes):
        self.summary = summary
        self.calls: List[tuple] = []

    async def diff(self, old_path: Path, new_path: Path) -> bytes:
        self.calls.append((old_path, new_path))
        return self.summary


class MemoryReportWindow:
    """Report window keeping its body in memory."""

    def __init__(self, fail_writes: bool = False):
        self.body = b""
        self.cleared = 0
        self.cleaned = 0
        self.fail_writes = fail_writes

    async def clear_body(self):
        self.body = b""
        self.cleared += 1
        return Success(None)

    async def append_body(self, data: bytes):
        if self.fail_writes:
            return Failure(EditorError(message="window gone", operation="write"))
        self.body += data
        return Success(None)

    async def mark_clean(self):
        self.cleaned += 1
        return Success(None)


@pytest.fixture
def report_window() -> MemoryReportWindow:
    return MemoryReportWindow()


@pytest.fixture
def report(report_window: MemoryReportWindow) -> ReportSink:
    return ReportSink(report_window)


@pytest.fixture
def make_formatter() -> Callable[..., FakeFormatter]:
    """Build a FakeFormatter from content or failure details."""
    def factory(
        content: bytes = b"",
        ok: bool = True,
        output: bytes = b"",
        error: str = "",
        command: str = "goimports",
        exit_code: Optional[int] = None,
    ) -> FakeFormatter:
        return FakeFormatter(FormatResult(
            content=content, ok=ok, output=output, error=error, command=command, exit_code=exit_code
        ))
    return factory


@pytest.fixture
def source_file(tmp_path: Path) -> Callable[[bytes, Optional[str]], Path]:
    """Write a source file under tmp_path and return its path."""
    def factory(content: bytes, name: Optional[str] = None) -> Path:
        path = tmp_path / (name or "main.go")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return factory
