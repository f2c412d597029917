# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for raw and final shader manifests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cargo_gpu.errors import ManifestError
from cargo_gpu.manifest import (
    Linkage,
    ShaderModule,
    read_final_manifest,
    read_raw_manifest,
    relocate_modules,
    render_manifest,
    sort_linkage,
    write_final_manifest,
)


def test_linkage_strips_path_separators_for_wgsl() -> None:
    linkage = Linkage.new("module::main_vs", "shaders/out/main.spv")

    assert linkage.wgsl_entry_point == "modulemain_vs"
    assert linkage.entry_point == "module::main_vs"


def test_linkage_uses_forward_slashes() -> None:
    assert Linkage.new("main", "out\\main.spv").source_path == "out/main.spv"


def test_linkage_sorted_by_source_path_then_entry_point() -> None:
    records = [
        Linkage.new("a::main", "out/z.spv"),
        Linkage.new("b::main", "out/a.spv"),
        Linkage.new("a::main", "out/a.spv"),
    ]

    ordered = sort_linkage(records)

    assert [(record.source_path, record.entry_point) for record in ordered] == [
        ("out/a.spv", "a::main"),
        ("out/a.spv", "b::main"),
        ("out/z.spv", "a::main"),
    ]


def test_linkage_entry_point_breaks_ties_within_one_artifact() -> None:
    records = [Linkage.new("b::f", "out/shader.spv"), Linkage.new("a::g", "out/shader.spv")]

    assert [record.entry_point for record in sort_linkage(records)] == ["a::g", "b::f"]


def test_render_manifest_is_sorted_pretty_json() -> None:
    rendered = render_manifest([Linkage.new("b::f", "b.spv"), Linkage.new("a::g", "a.spv")])

    assert not rendered.endswith("\n")
    assert rendered.startswith('[\n  {\n    "source_path": "a.spv"')
    assert [entry["entry_point"] for entry in json.loads(rendered)] == ["a::g", "b::f"]


def test_read_raw_manifest_requires_file(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="missing raw manifest"):
        read_raw_manifest(tmp_path / "spirv-manifest.json")


def test_read_raw_manifest_rejects_malformed_json(tmp_path: Path) -> None:
    raw = tmp_path / "spirv-manifest.json"
    raw.write_text('[{"entry": "main"}]', encoding="utf-8")

    with pytest.raises(ManifestError):
        read_raw_manifest(raw)


def test_relocate_modules_copies_and_links(tmp_path: Path) -> None:
    crate = tmp_path / "crate"
    build = crate / "target" / "spirv"
    build.mkdir(parents=True)
    output = crate / "out"
    output.mkdir()
    (build / "shader.spv").write_bytes(b"\x03\x02\x23\x07")
    raw = tmp_path / "spirv-manifest.json"
    raw.write_text(
        json.dumps(
            [
                {"entry": "b::f", "path": str(build / "shader.spv")},
                {"entry": "a::g", "path": str(build / "shader.spv")},
            ]
        ),
        encoding="utf-8",
    )

    linkage = relocate_modules(read_raw_manifest(raw), output, crate)

    assert (output / "shader.spv").read_bytes() == b"\x03\x02\x23\x07"
    assert [record.entry_point for record in linkage] == ["a::g", "b::f"]
    assert all(record.source_path == "out/shader.spv" for record in linkage)


def test_relocate_modules_keeps_artifacts_already_in_place(tmp_path: Path) -> None:
    artifact = tmp_path / "main.spv"
    artifact.write_bytes(b"spv")

    linkage = relocate_modules([ShaderModule(entry="main", path=artifact)], tmp_path, tmp_path)

    assert artifact.read_bytes() == b"spv"
    assert linkage == [Linkage.new("main", "main.spv")]


def test_relocate_modules_reports_missing_artifact(tmp_path: Path) -> None:
    with pytest.raises(ManifestError):
        relocate_modules([ShaderModule(entry="main", path=tmp_path / "gone.spv")], tmp_path / "out", tmp_path)


def test_final_manifest_round_trip(tmp_path: Path) -> None:
    records = [
        Linkage.new("module::main_vs", "out/z.spv"),
        Linkage.new("main_fs", "out/a.spv"),
        Linkage.new("main_vs", "out/a.spv"),
    ]
    path = write_final_manifest(tmp_path / "manifest.json", records)

    assert read_final_manifest(path) == sort_linkage(records)
    assert render_manifest(read_final_manifest(path)) == path.read_text(encoding="utf-8")
