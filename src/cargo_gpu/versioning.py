# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Helpers for capturing and comparing toolchain versions."""

from __future__ import annotations

import re
from collections.abc import Sequence

from packaging.version import InvalidVersion, Version

from .process import CommandOptions, SubprocessExecutionError, run_command


class VersionResolver:
    """Capture and compare cargo versions using standard version semantics."""

    VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+)+)")

    def capture(self, command: Sequence[str]) -> Version | None:
        """Return the version reported by ``command`` if available.

        Args:
            command: Command printing a version banner, e.g. ``cargo --version``.

        Returns:
            Version | None: Parsed version, or ``None`` when the command failed
            or printed nothing recognisable.
        """

        try:
            completed = run_command(list(command), options=CommandOptions(capture_output=True))
        except (OSError, ValueError, SubprocessExecutionError):
            return None
        output = completed.stdout.strip() or completed.stderr.strip()
        if not output:
            return None
        return self.normalize(output.splitlines()[0])

    def cargo_version(self, channel: str | None = None) -> Version | None:
        """Return the cargo version of ``channel``, or of the default toolchain.

        Args:
            channel: Optional rustup channel selector such as ``nightly-2024-04-24``.

        Returns:
            Version | None: The reported cargo version.
        """

        command = ["cargo", f"+{channel}", "--version"] if channel else ["cargo", "--version"]
        return self.capture(command)

    def normalize(self, raw: str | None) -> Version | None:
        """Extract the first dotted version number from ``raw``."""

        if not raw:
            return None
        match = self.VERSION_PATTERN.search(raw)
        if match is None:
            return None
        try:
            return Version(match.group(1))
        except InvalidVersion:
            return None

    @staticmethod
    def predates(actual: Version | None, threshold: Version) -> bool:
        """Return ``True`` when ``actual`` is known and older than ``threshold``."""

        return actual is not None and actual < threshold


__all__ = ["VersionResolver"]
