# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cache root discovery and the on-disk cache layout."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .errors import ConfigurationError

CACHE_DIR_ENV: Final[str] = "CARGO_GPU_CACHE_DIR"
CACHE_DIRNAME: Final[str] = "rust-gpu"
REPO_SUBDIR: Final[str] = "rust-gpu-repo"
BUILDER_SUBDIR: Final[str] = "spirv-builder-cli"


def default_cache_root(env: Mapping[str, str] | None = None) -> Path:
    """Return the cache root for the current platform.

    Args:
        env: Environment mapping to consult, defaults to ``os.environ``.

    Returns:
        Path: ``$CARGO_GPU_CACHE_DIR`` when set, otherwise the platform user
        cache directory joined with ``rust-gpu``.
    """

    environ = os.environ if env is None else env
    override = environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    if sys.platform == "win32":
        local = environ.get("LOCALAPPDATA")
        base = Path(local) if local else Path.home() / "AppData" / "Local"
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Caches"
    else:
        xdg = environ.get("XDG_CACHE_HOME")
        base = Path(xdg) if xdg else Path.home() / ".cache"
    return base / CACHE_DIRNAME


@dataclass(frozen=True, slots=True)
class CacheLayout:
    """Model the directories kept under the cache root.

    Attributes:
        root: Cache root directory.
        repos_dir: Checkouts of the backend repository, one per source.
        builders_dir: Built driver/plugin pairs, one per toolchain identity.
    """

    root: Path
    repos_dir: Path = field(init=False)
    builders_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "repos_dir", self.root / REPO_SUBDIR)
        object.__setattr__(self, "builders_dir", self.root / BUILDER_SUBDIR)

    @classmethod
    def discover(cls, env: Mapping[str, str] | None = None) -> CacheLayout:
        """Return the layout rooted at :func:`default_cache_root`."""

        return cls(root=default_cache_root(env))

    def ensure(self) -> CacheLayout:
        """Create the cache directories when missing and return ``self``.

        Raises:
            ConfigurationError: If a cache directory cannot be created.
        """

        for directory in (self.root, self.repos_dir, self.builders_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ConfigurationError(f"could not create cache directory '{directory}': {exc}") from exc
        return self


__all__ = ["CACHE_DIR_ENV", "CacheLayout", "default_cache_root"]
