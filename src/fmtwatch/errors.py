# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Error types for functional error handling using Result.

Every fallible operation in fmtwatch returns ``Result[Value, Error]`` (or the
``IOResult`` variant at I/O boundaries) with one of the error types below.
Errors are split into two classes:

- process-fatal errors (``fatal`` is True) end the whole watch session,
- cycle-local errors abort only the current save cycle.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from returns.result import Result


# =============================================================================
# Base Error Type
# =============================================================================

@dataclass(frozen=True)
class FmtwatchError:
    """Base error type for all fmtwatch errors."""
    message: str

    @property
    def fatal(self) -> bool:
        """Whether the error must terminate the watch session."""
        return False

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Process-fatal Errors
# =============================================================================

@dataclass(frozen=True)
class FileError(FmtwatchError):
    """File operation error (reading the saved file, creating the temp file)."""
    path: Path
    operation: Literal["read", "write", "create", "delete"]
    original_error: str | None = None
    not_found: bool = False

    @property
    def fatal(self) -> bool:
        return True


@dataclass(frozen=True)
class EditorError(FmtwatchError):
    """The editor could not be reached (window, log or control file)."""
    operation: Literal["open", "create", "log", "ctl", "read", "write"]
    window_id: int | None = None

    @property
    def fatal(self) -> bool:
        return True


# =============================================================================
# Cycle-local Errors
# =============================================================================

@dataclass(frozen=True)
class ToolError(FmtwatchError):
    """An external tool (formatter, test, install) exited unsuccessfully."""
    command: str
    output: str = ""
    exit_code: int | None = None


@dataclass(frozen=True)
class DiffParseError(FmtwatchError):
    """A diff summary line carries no a/c/d operator."""
    line: str


@dataclass(frozen=True)
class BufferEditError(FmtwatchError):
    """Setting the edit address or writing the buffer failed."""
    operation: Literal["select", "write", "mark"]
    address: str = ""


# =============================================================================
# Configuration Errors
# =============================================================================

@dataclass(frozen=True)
class ConfigError(FmtwatchError):
    """Configuration error."""
    key: str | None = None
    invalid_value: str | None = None


# =============================================================================
# Type Aliases for Common Result Types
# =============================================================================

# File content as raw bytes
BytesResult = Result[bytes, FileError]

# Buffer edits return nothing useful on success
EditResult = Result[None, BufferEditError]


# =============================================================================
# Error Helpers
# =============================================================================

def file_not_found(path: Path, operation: Literal["read", "write", "create", "delete"] = "read") -> FileError:
    """Create a file not found error."""
    return FileError(
        message=f"File not found: {path}",
        path=path,
        operation=operation,
        not_found=True
    )


def cannot_parse_diff_line(line: str) -> DiffParseError:
    """Create the error for a summary line without an operator."""
    return DiffParseError(
        message=f"cannot parse diff line: {line!r}",
        line=line
    )
