# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing output helpers and diagnostic logging setup.

Messages for the user go to stdout through a Rich console; diagnostics go
through :mod:`logging` and are silent unless enabled.
"""

from __future__ import annotations

import logging
import os
import sys
from functools import lru_cache
from typing import Final

from rich.console import Console
from rich.text import Text

LOG_ENV: Final[str] = "CARGO_GPU_LOG"
PACKAGE_LOGGER: Final[str] = "cargo_gpu"
_CONFIGURED_FLAG: Final[str] = "_cargo_gpu_configured"


def _stdout_is_terminal() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


@lru_cache(maxsize=4)
def _console(terminal: bool, use_emoji: bool) -> Console:
    """Return the shared console for a terminal state and emoji preference."""

    return Console(force_terminal=terminal, no_color=not terminal, emoji=use_emoji, highlight=False, soft_wrap=True)


def emoji(symbol: str, enable: bool) -> str:
    """Select an emoji symbol based on the caller's preference.

    Args:
        symbol: Emoji text to include in the output.
        enable: Flag indicating whether emoji output is desired.

    Returns:
        str: Emoji symbol when enabled, otherwise an empty string.
    """

    return symbol if enable else ""


def _print_line(msg: str, *, style: str, use_emoji: bool) -> None:
    terminal = _stdout_is_terminal()
    _console(terminal, use_emoji).print(Text(msg, style=style if terminal else ""))


def info(msg: str, *, use_emoji: bool) -> None:
    """Emit an informational message, prefixed with the crab when emoji are on."""

    _print_line(f"{emoji('🦀 ', use_emoji)}{msg}", style="cyan", use_emoji=use_emoji)


def ok(msg: str, *, use_emoji: bool) -> None:
    """Emit a success message."""

    _print_line(f"{emoji('✅ ', use_emoji)}{msg}", style="green", use_emoji=use_emoji)


def warn(msg: str, *, use_emoji: bool) -> None:
    """Emit a warning message."""

    _print_line(f"{emoji('⚠️ ', use_emoji)}{msg}", style="yellow", use_emoji=use_emoji)


def fail(msg: str, *, use_emoji: bool) -> None:
    """Emit an error message."""

    _print_line(f"{emoji('❌ ', use_emoji)}{msg}", style="red", use_emoji=use_emoji)


def configure_diagnostics(*, verbose: bool) -> None:
    """Stream the package's diagnostic log records to stderr.

    Diagnostics are enabled by ``--verbose`` or by setting ``CARGO_GPU_LOG`` to a
    level name such as ``debug`` or ``info``. Without either, logging keeps
    its standard configuration.

    Args:
        verbose: ``True`` when the user passed ``--verbose``.
    """

    level_name = os.environ.get(LOG_ENV, "").upper()
    levels = logging.getLevelNamesMapping()
    if verbose:
        level = logging.DEBUG
    elif level_name in levels:
        level = levels[level_name]
    else:
        return
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if getattr(logger, _CONFIGURED_FLAG, False):
        return
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s %(name)s] %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    setattr(logger, _CONFIGURED_FLAG, True)


__all__ = [
    "configure_diagnostics",
    "emoji",
    "fail",
    "info",
    "ok",
    "warn",
]
