# =============================================================================
# fmtwatch - Format-on-Save Watcher
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025 Michael Gardner, A Bit of Help, Inc.
# See LICENSE file in the project root.
# =============================================================================

"""fmtwatch: reformat files on save and replay the changes into the editor."""

__version__ = "0.1.0"
