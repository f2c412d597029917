# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the packaged driver-crate templates."""

from __future__ import annotations

import tomllib
from pathlib import Path, PurePosixPath

import pytest

from cargo_gpu.errors import BackendBuildError
from cargo_gpu.templating import DRIVER_BUNDLE, iter_bundle, materialize, substitute

VALUES = {
    "CHANNEL": "nightly-2024-04-24",
    "SOURCE": 'git = "https://example.com/repo"',
    "VERSION": 'rev = "abc123"',
    "FEATURE": "spirv-builder-0_10",
}


def test_substitute_replaces_placeholders_only() -> None:
    assert substitute("channel = ${CHANNEL} # {braces} stay", {"CHANNEL": "stable"}) == "channel = stable # {braces} stay"


def test_substitute_reports_missing_values() -> None:
    with pytest.raises(BackendBuildError):
        substitute("${MISSING}", {})


def test_driver_bundle_files() -> None:
    paths = [relative for relative, _ in iter_bundle(DRIVER_BUNDLE)]

    assert paths == sorted(paths)
    assert PurePosixPath("Cargo.toml") in paths
    assert PurePosixPath("rust-toolchain.toml") in paths
    assert PurePosixPath("src/main.rs") in paths


def test_materialize_renders_valid_manifests(tmp_path: Path) -> None:
    written = materialize(DRIVER_BUNDLE, tmp_path, VALUES)

    assert tmp_path / "src" / "main.rs" in written
    toolchain = tomllib.loads((tmp_path / "rust-toolchain.toml").read_text(encoding="utf-8"))
    assert toolchain["toolchain"]["channel"] == "nightly-2024-04-24"
    manifest = tomllib.loads((tmp_path / "Cargo.toml").read_text(encoding="utf-8"))
    dependency = manifest["dependencies"]["spirv-builder-0_10"]
    assert dependency["git"] == "https://example.com/repo"
    assert dependency["rev"] == "abc123"
    assert "${" not in (tmp_path / "Cargo.toml").read_text(encoding="utf-8")


def test_materialize_wraps_write_failures(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").mkdir()

    with pytest.raises(BackendBuildError, match="could not write"):
        materialize(DRIVER_BUNDLE, tmp_path, VALUES)
