# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the per-toolchain backend cache."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from subprocess import CompletedProcess

import pytest

from cargo_gpu.cache import (
    CURRENT_FEATURE,
    PRE_CLI_FEATURE,
    ToolchainCache,
    driver_filename,
    plugin_filename,
    required_feature,
)
from cargo_gpu.errors import BackendBuildError, BackendBuildFailed, ConfigurationError
from cargo_gpu.paths import CacheLayout
from cargo_gpu.process import SubprocessExecutionError
from cargo_gpu.resolver import ResolvedToolchain
from cargo_gpu.source import GitSource, RegistryVersion

TOOLCHAIN = ResolvedToolchain(
    source=RegistryVersion(version="0.9.0"),
    channel="nightly-2024-04-24",
    release_date=date(2024, 4, 24),
)


def _completed(args: list[str], *, returncode: int = 0) -> CompletedProcess[str]:
    return CompletedProcess(args=args, returncode=returncode, stdout="", stderr="")


def _fake_cargo(commands: list[list[str]], platform: str = "linux"):  # noqa: ANN202
    def fake_run_command(args, *, options=None):  # noqa: ANN001
        commands.append(list(args))
        if "build" in args:
            release = options.cwd / "target" / "release"
            release.mkdir(parents=True, exist_ok=True)
            (release / plugin_filename(platform)).write_bytes(b"plugin")
            (release / driver_filename(platform)).write_bytes(b"driver")
        return _completed(list(args))

    return fake_run_command


@pytest.mark.parametrize(
    ("platform", "plugin", "driver"),
    [
        ("linux", "librustc_codegen_spirv.so", "spirv-builder-cli"),
        ("darwin", "librustc_codegen_spirv.dylib", "spirv-builder-cli"),
        ("win32", "rustc_codegen_spirv.dll", "spirv-builder-cli.exe"),
    ],
)
def test_artifact_filenames(platform: str, plugin: str, driver: str) -> None:
    assert plugin_filename(platform) == plugin
    assert driver_filename(platform) == driver


def test_required_feature_switches_on_cutover_date() -> None:
    assert required_feature(date(2024, 4, 23)) == PRE_CLI_FEATURE
    assert required_feature(date(2024, 4, 24)) == CURRENT_FEATURE


def test_distinct_toolchains_get_distinct_entries(layout: CacheLayout) -> None:
    cache = ToolchainCache(layout)
    other = ResolvedToolchain(
        source=GitSource(url="https://example.com/repo", revision="abc"),
        channel=TOOLCHAIN.channel,
        release_date=TOOLCHAIN.release_date,
    )

    assert cache.checkout_path(TOOLCHAIN) != cache.checkout_path(other)
    assert cache.checkout_path(TOOLCHAIN).parent == layout.builders_dir


def test_ensure_built_builds_once(monkeypatch: pytest.MonkeyPatch, layout: CacheLayout) -> None:
    commands: list[list[str]] = []
    monkeypatch.setattr("cargo_gpu.cache.run_command", _fake_cargo(commands))
    cache = ToolchainCache(layout, platform="linux")

    first = cache.ensure_built(TOOLCHAIN)
    second = cache.ensure_built(TOOLCHAIN)

    assert first == second
    assert first.exist()
    assert first.plugin.read_bytes() == b"plugin"
    builds = [command for command in commands if "build" in command]
    assert builds == [
        [
            "cargo",
            "+nightly-2024-04-24",
            "build",
            "--release",
            "--no-default-features",
            "--features",
            CURRENT_FEATURE,
        ]
    ]
    assert commands[0] == ["cargo", "update"]
    checkout = first.driver.parent
    assert (checkout / "Cargo.toml").is_file()
    assert 'channel = "nightly-2024-04-24"' in (checkout / "rust-toolchain.toml").read_text(encoding="utf-8")


def test_ensure_built_force_rebuilds(monkeypatch: pytest.MonkeyPatch, layout: CacheLayout) -> None:
    commands: list[list[str]] = []
    monkeypatch.setattr("cargo_gpu.cache.run_command", _fake_cargo(commands))
    cache = ToolchainCache(layout, platform="linux")

    cache.ensure_built(TOOLCHAIN)
    cache.ensure_built(TOOLCHAIN, force=True)

    assert len([command for command in commands if "build" in command]) == 2


def test_ensure_built_uses_pre_cli_feature_for_old_backends(
    monkeypatch: pytest.MonkeyPatch,
    layout: CacheLayout,
) -> None:
    commands: list[list[str]] = []
    monkeypatch.setattr("cargo_gpu.cache.run_command", _fake_cargo(commands))
    old = ResolvedToolchain(
        source=RegistryVersion(version="0.9.0"),
        channel="nightly-2023-05-27",
        release_date=date(2023, 9, 1),
    )

    ToolchainCache(layout, platform="linux").ensure_built(old)

    assert commands[-1][-1] == PRE_CLI_FEATURE


def test_ensure_built_reports_missing_artifacts(monkeypatch: pytest.MonkeyPatch, layout: CacheLayout) -> None:
    monkeypatch.setattr("cargo_gpu.cache.run_command", lambda args, **kwargs: _completed(list(args)))

    with pytest.raises(BackendBuildFailed):
        ToolchainCache(layout, platform="linux").ensure_built(TOOLCHAIN)


def test_ensure_built_reports_cargo_failure(monkeypatch: pytest.MonkeyPatch, layout: CacheLayout) -> None:
    def failing_run_command(args, **kwargs):  # noqa: ANN001
        raise SubprocessExecutionError(list(args), 101, None, None)

    monkeypatch.setattr("cargo_gpu.cache.run_command", failing_run_command)

    with pytest.raises(BackendBuildError, match="cargo update failed"):
        ToolchainCache(layout, platform="linux").ensure_built(TOOLCHAIN)


def test_ensure_built_wraps_unwritable_checkout(layout: CacheLayout) -> None:
    cache = ToolchainCache(layout, platform="linux")
    (cache.checkout_path(TOOLCHAIN) / "Cargo.toml").mkdir()

    with pytest.raises(BackendBuildError, match="Cargo.toml"):
        cache.ensure_built(TOOLCHAIN)


def test_ensure_built_wraps_failed_relocation(monkeypatch: pytest.MonkeyPatch, layout: CacheLayout) -> None:
    commands: list[list[str]] = []
    monkeypatch.setattr("cargo_gpu.cache.run_command", _fake_cargo(commands))
    cache = ToolchainCache(layout, platform="linux")
    blocker = cache.artifacts(TOOLCHAIN).plugin
    blocker.mkdir()
    (blocker / "stale").write_bytes(b"")

    with pytest.raises(BackendBuildError, match="into the cache"):
        cache.ensure_built(TOOLCHAIN)


def test_cache_layout_reports_blocked_root(tmp_path: Path) -> None:
    blocked = tmp_path / "cache"
    blocked.write_text("not a directory", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="could not create cache directory"):
        CacheLayout(root=blocked).ensure()
