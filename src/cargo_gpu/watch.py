# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Polling change detection for ``build --watch``."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Final

LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL: Final[float] = 0.5
IGNORED_DIRECTORIES: Final[frozenset[str]] = frozenset({"target", ".git"})

Snapshot = dict[Path, int]


class SourceWatcher:
    """Report changes to the files of a shader crate by polling modification times.

    Args:
        root: Directory to watch recursively.
        ignore: Directories whose contents never count as changes, such as the
            output directory the build writes into.
        interval: Seconds between polls.
        sleep: Sleep function, replaced in tests.
    """

    def __init__(
        self,
        root: Path,
        *,
        ignore: Iterable[Path] = (),
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.root = root
        self._ignored = {path.resolve() for path in ignore}
        self._interval = interval
        self._sleep = sleep

    def _skipped(self, directory: Path) -> bool:
        return directory.name in IGNORED_DIRECTORIES or directory.resolve() in self._ignored

    def snapshot(self) -> Snapshot:
        """Return the modification time of every watched file."""

        state: Snapshot = {}
        for current, dirnames, filenames in os.walk(self.root):
            base = Path(current)
            dirnames[:] = sorted(name for name in dirnames if not self._skipped(base / name))
            for filename in filenames:
                path = base / filename
                try:
                    state[path] = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
        return state

    @staticmethod
    def diff(before: Snapshot, after: Snapshot) -> set[Path]:
        """Return files added, removed or modified between two snapshots."""

        changed = {path for path, mtime in after.items() if before.get(path) != mtime}
        changed.update(path for path in before if path not in after)
        return changed

    def changes(self) -> Iterator[set[Path]]:
        """Yield the set of changed files each time the watched tree changes. Never returns."""

        previous = self.snapshot()
        while True:
            self._sleep(self._interval)
            current = self.snapshot()
            changed = self.diff(previous, current)
            previous = current
            if changed:
                LOGGER.debug("detected changes in %d file(s)", len(changed))
                yield changed


__all__ = ["SourceWatcher"]
