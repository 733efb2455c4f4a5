# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""
Watcher configuration.

Settings come from (highest first) explicit constructor values, the
environment (``FMTWATCH_*``) and an optional ``.fmtwatch.env`` file. The CLI
builds one ``WatchSettings`` and hands it to every component that needs it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def default_root() -> Path:
    """Directory to watch, derived from acme's ``%`` (the invoking window's file).

    A value ending in ``/`` names a directory window and is used as is;
    otherwise the file's directory is used. Without ``%`` the current
    directory is watched.
    """
    current = os.environ.get("%", "")
    if not current:
        return Path.cwd()
    if current.endswith("/"):
        return Path(current)
    return Path(current).parent


def default_shell() -> str:
    return "rc" if os.environ.get("PLAN9") else "sh"


class WatchSettings(BaseSettings):
    """Configuration for the watch loop and the save cycle."""

    root: Path = Field(default_factory=default_root, description="Only files under this directory are handled")
    extension: str = Field(default=".go", description="Suffix of the source files to format")

    # Formatting and diffing
    formatter: list[str] = Field(default=["goimports"], description="Formatter command; the file path is appended")
    fatal_marker: str = Field(default="fatal error", description="Formatter output marking an operational failure")
    diff_command: list[str] = Field(default=["diff"], description="Normal-format line diff command")

    # Build steps after a clean format
    test_command: list[str] = Field(
        default=["go", "test", "{package}"],
        description="Test command; {package} is the file's directory relative to root"
    )
    install_command: list[str] = Field(default=["go", "install", "./cmd/..."], description="Install command")
    install_after: bool = Field(default=False, description="Run the install command after tests pass")
    run_after: Optional[str] = Field(default=None, description="Shell command to run after every successful build")
    shell: str = Field(default_factory=default_shell, description="Shell used for run_after")

    # Editor
    report_name: str = Field(default="+Watch", description="Name of the report window, relative to root")
    ninep: str = Field(default="9p", description="plan9port 9p client used to reach acme")

    # Logging
    log_path: Optional[Path] = Field(default=None, description="JSON Lines log of save cycles")
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = {
        "env_prefix": "FMTWATCH_",
        "env_file": ".fmtwatch.env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @field_validator("extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        if value and not value.startswith("."):
            return "." + value
        return value

    @field_validator("formatter", "diff_command", "test_command")
    @classmethod
    def _non_empty_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    @property
    def report_path(self) -> Path:
        return self.root / self.report_name

    def watches(self, name: str) -> bool:
        """Whether a saved file name is one this watcher formats."""
        if not name or not name.endswith(self.extension):
            return False
        return name.startswith(str(self.root))

    def package_of(self, name: str) -> Optional[str]:
        """Test target for a file: ``"."`` for the root, ``"./rel"`` below it."""
        directory = Path(name).parent
        try:
            rel = directory.relative_to(self.root)
        except ValueError:
            return None
        if str(rel) == ".":
            return "."
        return f"./{rel.as_posix()}"
