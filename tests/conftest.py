# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from cargo_gpu.paths import CACHE_DIR_ENV, CacheLayout


@pytest.fixture
def shader_crate(tmp_path: Path) -> Path:
    """Return a minimal shader crate directory."""
    crate = tmp_path / "shaders"
    (crate / "src").mkdir(parents=True)
    (crate / "Cargo.toml").write_text(
        '[package]\nname = "shaders"\nversion = "0.1.0"\n\n[dependencies]\nspirv-std = "0.9.0"\n',
        encoding="utf-8",
    )
    (crate / "src" / "lib.rs").write_text("#![no_std]\n", encoding="utf-8")
    return crate


@pytest.fixture
def layout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CacheLayout:
    """Return a cache layout rooted in the test's temporary directory."""
    root = tmp_path / "cache"
    monkeypatch.setenv(CACHE_DIR_ENV, str(root))
    return CacheLayout(root=root).ensure()
