# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""Unit tests for fmtwatch components.

Test Modules:
    - test_diff_parser.py: Normal-format diff directives and spans
    - test_line_extract.py: Line range extraction from the new content
    - test_buffer.py: In-memory buffer addressing and edits
    - test_replay.py: Format, compare, diff and replay cycle
    - test_watcher.py: Save cycle steps and the watch loop
    - test_acme.py: acme log, window and event protocol
    - test_cli.py: Command-line interface
"""
