# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""fmtwatch test suite.

Tests are organized as unit tests under unit/. External editors and tools
are replaced by the fakes in conftest.py; the few tests that run real POSIX
tools (sh, cat, sed, diff) are skipped when those tools are missing.

Running Tests:
    # All tests
    pytest

    # Without the tests that run external tools
    pytest -m "not integration"

    # Specific test
    pytest tests/unit/test_replay.py::TestScenarios
"""
