# SPDX-License-Identifier: MIT
"""Shared helpers for pointforge."""

from .logging import configure_logging, get_logger, run_context

__all__ = ["configure_logging", "get_logger", "run_context"]
