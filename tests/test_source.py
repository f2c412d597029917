# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for backend source descriptors."""

from __future__ import annotations

import pytest

from cargo_gpu.errors import MalformedSourceDescriptor
from cargo_gpu.source import (
    RUST_GPU_REPO,
    GitSource,
    LocalPath,
    RegistryVersion,
    from_overrides,
    manifest_fragment,
    parse_dependency_line,
    render,
    to_cache_key,
    to_dirname,
)


def test_parse_git_dependency_with_deduplication_marker() -> None:
    line = "spirv-std v0.9.0 (https://example.com/repo?rev=abc123#abc123) (*)"

    assert parse_dependency_line(line) == GitSource(url="https://example.com/repo", revision="abc123")


def test_parse_registry_dependency() -> None:
    source = parse_dependency_line("spirv-std v0.9.0")

    assert source == RegistryVersion(version="v0.9.0")
    assert source.repository == RUST_GPU_REPO
    assert source.git_ref == "v0.9.0"


def test_parse_registry_dependency_with_only_marker() -> None:
    assert parse_dependency_line("spirv-std v0.9.0 (*)") == RegistryVersion(version="v0.9.0")


def test_parse_git_dependency_uses_fragment_without_rev_query() -> None:
    line = "spirv-std v0.9.0 (https://github.com/Rust-GPU/rust-gpu?branch=main#82a0f69)"

    assert parse_dependency_line(line) == GitSource(url="https://github.com/Rust-GPU/rust-gpu", revision="82a0f69")


def test_parse_git_dependency_falls_back_to_version() -> None:
    line = "spirv-std v0.9.0 (https://github.com/Rust-GPU/rust-gpu)"

    assert parse_dependency_line(line) == GitSource(url="https://github.com/Rust-GPU/rust-gpu", revision="v0.9.0")


@pytest.mark.parametrize(
    "location",
    ["/home/user/rust-gpu/crates/spirv-std", "C:\\Users\\me\\rust-gpu\\crates\\spirv-std"],
)
def test_parse_local_path_dependency(location: str) -> None:
    source = parse_dependency_line(f"spirv-std v0.9.0 ({location})")

    assert source == LocalPath(path=location, version="v0.9.0")


def test_parse_rejects_line_without_version() -> None:
    with pytest.raises(MalformedSourceDescriptor):
        parse_dependency_line("spirv-std")


def test_render_is_origin_plus_version() -> None:
    assert render(RegistryVersion(version="0.9.0")) == "crates.io+0.9.0"
    assert render(GitSource(url="https://example.com/repo", revision="abc123")) == "https://example.com/repo+abc123"


def test_from_overrides_selects_variant() -> None:
    assert from_overrides(None, "0.9.0") == RegistryVersion(version="0.9.0")
    assert from_overrides("https://example.com/repo", "abc") == GitSource(url="https://example.com/repo", revision="abc")


def test_manifest_fragment_per_variant() -> None:
    assert manifest_fragment(RegistryVersion(version="v0.9.0")) == ("", 'version = "0.9.0"')
    assert manifest_fragment(GitSource(url="https://example.com/repo", revision="abc")) == (
        'git = "https://example.com/repo"',
        'rev = "abc"',
    )
    assert manifest_fragment(LocalPath(path="C:\\src\\rust-gpu", version="v0.9.0")) == (
        "path = 'C:\\src\\rust-gpu'",
        'version = "0.9.0"',
    )


def test_to_dirname_replaces_unsafe_characters() -> None:
    assert to_dirname("crates.io+0.9.0") == "crates_io+0_9_0"
    assert "/" not in to_dirname("https://example.com/repo+abc")


def test_cache_keys_stay_distinct_for_look_alike_sources() -> None:
    sources = [
        RegistryVersion(version="0.9.0"),
        RegistryVersion(version="0_9_0"),
        GitSource(url="https://example.com/a+b", revision="c"),
        GitSource(url="https://example.com/a", revision="b+c"),
        GitSource(url="https://example.com/repo", revision="abc 123"),
        GitSource(url="https://example.com/repo", revision="abc123"),
    ]

    keys = [to_cache_key(source) for source in sources]

    assert len(set(keys)) == len(keys)
    assert all("/" not in key and " " not in key for key in keys)
