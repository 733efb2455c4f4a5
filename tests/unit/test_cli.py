# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Unit tests for the command-line interface."""

import io
import shutil
from unittest.mock import AsyncMock, patch

import pytest
from returns.result import Failure, Success
from rich.console import Console
from typer.testing import CliRunner

from fmtwatch import __version__
from fmtwatch.cli import _load_settings, _print_summary, app
from fmtwatch.errors import EditorError

runner = CliRunner()

needs_tools = pytest.mark.skipif(
    shutil.which("sed") is None or shutil.which("diff") is None,
    reason="sed and diff are required",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("%", raising=False)
    monkeypatch.delenv("FMTWATCH_FORMATTER", raising=False)


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"fmtwatch {__version__}" in result.output


class TestDiffParse:

    def test_table(self, tmp_path):
        summary = tmp_path / "summary.diff"
        summary.write_text("0a1\n> // header\n2c2\n< a\n---\n> b\n4,5d3\n< x\n< y\n")

        result = runner.invoke(app, ["diff-parse", str(summary)])

        assert result.exit_code == 0
        for word in ("append", "change", "delete", "4,5"):
            assert word in result.output

    def test_stdin(self):
        result = runner.invoke(app, ["diff-parse"], input="3d2\n< gone\n")

        assert result.exit_code == 0
        assert "delete" in result.output

    def test_unparsable_line(self):
        result = runner.invoke(app, ["diff-parse"], input="oops\n")

        assert result.exit_code == 1
        assert "cannot parse diff line" in result.output


class TestReplay:

    @needs_tools
    def test_writes_back(self, tmp_path):
        source = tmp_path / "main.go"
        source.write_bytes(b"x\nkeep\nx\n")

        result = runner.invoke(app, ["replay", str(source), "--formatter", "sed -e s/x/y/"])

        assert result.exit_code == 0, result.output
        assert source.read_bytes() == b"y\nkeep\ny\n"
        assert "edit(s)" in result.output

    @needs_tools
    def test_no_write(self, tmp_path):
        source = tmp_path / "main.go"
        source.write_bytes(b"x\n")

        result = runner.invoke(app, ["replay", str(source), "--no-write", "--formatter", "sed -e s/x/y/"])

        assert result.exit_code == 0
        assert source.read_bytes() == b"x\n"

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["replay", str(tmp_path / "gone.go")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    @pytest.mark.skipif(shutil.which("sh") is None, reason="sh not installed")
    def test_formatter_failure(self, tmp_path):
        source = tmp_path / "main.go"
        source.write_bytes(b"x\n")

        result = runner.invoke(app, ["replay", str(source), "--formatter", "sh -c 'echo syntax error; exit 2' fmt"])

        assert result.exit_code == 1
        assert "syntax error" in result.output
        assert source.read_bytes() == b"x\n"


class TestWatch:

    def test_invalid_settings(self):
        result = runner.invoke(app, ["watch"], env={"FMTWATCH_FORMATTER": "[]"})

        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_session_failure_exit_code(self):
        failed = Failure(EditorError(message="9p: acme not running", operation="create"))
        with patch("fmtwatch.cli.run_session", new=AsyncMock(return_value=failed)):
            result = runner.invoke(app, ["watch"])

        assert result.exit_code == 1
        assert "acme not running" in result.output
        assert "saves" in result.output

    def test_clean_exit(self):
        with patch("fmtwatch.cli.run_session", new=AsyncMock(return_value=Success(0))) as session:
            result = runner.invoke(app, ["watch", "-i", "-r", "./server"])

        assert result.exit_code == 0
        settings = session.call_args.args[0]
        assert settings.install_after is True
        assert settings.run_after == "./server"


class TestSettingsErrors:

    def test_invalid_value_names_the_setting(self):
        result = _load_settings(formatter=[])

        error = result.failure()
        assert error.key == "formatter"
        assert error.invalid_value == "[]"

    def test_valid_overrides(self):
        assert _load_settings(run_after="./server", install_after=None).unwrap().run_after == "./server"


class TestSummary:

    @staticmethod
    def _snapshot(**overrides):
        snapshot = {
            "saves": 3, "reformatted": 1, "unchanged": 1, "edits": 4, "aborted": 1,
            "commands_ok": 2, "commands_failed": 0, "error_messages": [], "elapsed": 12.5,
        }
        snapshot.update(overrides)
        return snapshot

    def test_counters(self):
        out = io.StringIO()
        with patch("fmtwatch.cli.console", Console(file=out, width=120)):
            _print_summary(self._snapshot())

        text = out.getvalue()
        assert "reformatted" in text
        assert "12.5s" in text
        assert "Aborted cycles" not in text

    def test_abort_messages_are_listed(self):
        out = io.StringIO()
        messages = ["/p/main.go: goimports /p/main.go: exit status 2", "/p/x.go: [select] bad address"]
        with patch("fmtwatch.cli.console", Console(file=out, width=120)):
            _print_summary(self._snapshot(aborted=2, error_messages=messages))

        text = out.getvalue()
        assert "Aborted cycles (2 shown)" in text
        for message in messages:
            assert message in text
