# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for layered configuration merging."""

from __future__ import annotations

from pathlib import Path

import pytest

from cargo_gpu.config import ConfigMerger, SpirvMetadata, cli_args_to_tree, params_to_tree
from cargo_gpu.config.merger import lookup_pointer
from cargo_gpu.errors import ConfigurationError, UnknownConfigPath


def _metadata(package_path: Path, *, workspace: dict | None = None, package: dict | None = None) -> dict:
    document: dict = {
        "packages": [
            {
                "name": "shaders",
                "manifest_path": str(package_path.resolve() / "Cargo.toml"),
                "metadata": {"rust-gpu": package} if package is not None else None,
            }
        ],
    }
    if workspace is not None:
        document["metadata"] = {"rust-gpu": workspace}
    return document


def test_defaults_come_from_the_build_command() -> None:
    defaults = ConfigMerger().defaults()

    assert defaults["build"]["debug"] is False
    assert defaults["build"]["output_dir"] == "./"
    assert defaults["build"]["spirv_metadata"] == SpirvMetadata.NONE.value
    assert defaults["build"]["features"] == []
    assert defaults["install"]["shader_crate"] == "./"
    assert defaults["install"]["spirv_builder_source"] is None


def test_defaults_are_fresh_copies() -> None:
    merger = ConfigMerger()
    first = merger.defaults()
    first["build"]["features"].append("mutated")

    assert merger.defaults()["build"]["features"] == []


def test_merging_defaults_into_defaults_is_a_no_op() -> None:
    merger = ConfigMerger()
    defaults = merger.defaults()

    assert merger.merge(defaults, merger.defaults()) == defaults


def test_default_valued_patch_keeps_lower_layer_values() -> None:
    merger = ConfigMerger()
    base = merger.merge(merger.defaults(), {"build": {"debug": True, "output_dir": "out"}})

    merged = merger.merge(base, merger.defaults())

    assert merged["build"]["debug"] is True
    assert merged["build"]["output_dir"] == "out"


def test_merge_leaves_inputs_untouched() -> None:
    merger = ConfigMerger()
    base = merger.defaults()

    merger.merge(base, {"build": {"debug": True}})

    assert base["build"]["debug"] is False


def test_command_line_debug_flag_enables_debug(shader_crate: Path) -> None:
    merger = ConfigMerger(metadata_loader=lambda path: _metadata(path))

    tree = merger.resolve(shader_crate, cli_args_to_tree(["build", "--debug"]))

    assert tree["build"]["debug"] is True


def test_package_metadata_survives_command_line_defaults(shader_crate: Path) -> None:
    merger = ConfigMerger(metadata_loader=lambda path: _metadata(path, package={"build": {"debug": True}}))

    tree = merger.resolve(shader_crate, cli_args_to_tree(["build"]))

    assert tree["build"]["debug"] is True


def test_package_layer_overrides_workspace_layer(shader_crate: Path) -> None:
    merger = ConfigMerger(
        metadata_loader=lambda path: _metadata(
            path,
            workspace={"build": {"output-dir": "workspace-out", "multimodule": True}},
            package={"build": {"output-dir": "package-out"}},
        )
    )

    tree = merger.resolve(shader_crate, cli_args_to_tree([]))

    assert tree["build"]["output_dir"] == "package-out"
    assert tree["build"]["multimodule"] is True


def test_command_line_overrides_metadata(shader_crate: Path) -> None:
    merger = ConfigMerger(metadata_loader=lambda path: _metadata(path, package={"build": {"output-dir": "pkg"}}))

    tree = merger.resolve(shader_crate, cli_args_to_tree(["build", "--output-dir", "cli", "--features", "a"]))

    assert tree["build"]["output_dir"] == "cli"
    assert tree["build"]["features"] == ["a"]


def test_metadata_for_other_packages_is_ignored(shader_crate: Path, tmp_path: Path) -> None:
    other = tmp_path / "other"
    merger = ConfigMerger(metadata_loader=lambda path: _metadata(other, package={"build": {"debug": True}}))

    tree = merger.resolve(shader_crate, cli_args_to_tree([]))

    assert tree["build"]["debug"] is False


def test_keys_are_normalised() -> None:
    merger = ConfigMerger()

    tree = merger.merge_layers([{"Build": {"Output-Dir": "out", "SPIRV-Metadata": "full"}}])

    assert tree["build"]["output_dir"] == "out"
    assert tree["build"]["spirv_metadata"] == "full"


def test_unknown_path_is_rejected() -> None:
    merger = ConfigMerger()

    with pytest.raises(UnknownConfigPath) as excinfo:
        merger.merge(merger.defaults(), {"build": {"no_such_option": 1}})

    assert excinfo.value.pointer == "/build/no_such_option"
    assert "/build/no_such_option" in str(excinfo.value)


def test_lookup_pointer_unescapes_tokens() -> None:
    tree = {"a/b": {"c~d": 1}}

    assert lookup_pointer(tree, "/a~1b/c~0d") == 1


def test_unknown_command_line_option_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        cli_args_to_tree(["build", "--no-such-flag"])


def test_params_to_tree_validates_values() -> None:
    with pytest.raises(ConfigurationError):
        params_to_tree({"spirv_metadata": "everything"})


def test_params_to_tree_ignores_non_configuration_parameters() -> None:
    tree = params_to_tree({"emoji": False, "debug": True, "features": None})

    assert tree["build"]["debug"] is True
    assert tree["build"]["features"] == []
    assert "emoji" not in tree["build"]


def test_to_command_validates_merged_tree() -> None:
    merger = ConfigMerger()
    tree = merger.defaults()
    tree["build"]["debug"] = "sometimes"

    with pytest.raises(ConfigurationError):
        merger.to_command(tree)


def test_to_command_builds_driver_payload() -> None:
    merger = ConfigMerger()
    tree = merger.merge(merger.defaults(), {"build": {"capability": ["Int8"]}})

    payload = merger.to_command(tree).driver_payload()

    assert set(payload) == {"install", "build"}
    assert payload["build"]["capability"] == ["Int8"]
    assert payload["install"]["dylib_path"] == "INTERNALLY_SET"
