# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration layers declared in ``Cargo.toml`` metadata tables."""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal, cast

from ..errors import ConfigurationError, PackageNotFound
from ..process import CommandOptions, SubprocessExecutionError, run_command
from .models import BUILD_SECTION, INSTALL_SECTION, ConfigTree, JsonValue

LOGGER = logging.getLogger(__name__)

METADATA_KEY: Final[str] = "rust-gpu"
MANIFEST_NAME: Final[str] = "Cargo.toml"
SHADER_CRATE_KEY: Final[str] = "shader-crate"
_VERBATIM_PREFIX: Final[str] = "\\\\?\\"

ManifestKind = Literal["workspace", "package"]


def normalize_keys(value: JsonValue) -> JsonValue:
    """Return ``value`` with every object key lower-cased and hyphens turned into underscores."""

    if isinstance(value, Mapping):
        return {str(key).lower().replace("-", "_"): normalize_keys(child) for key, child in value.items()}
    if isinstance(value, list):
        return [normalize_keys(child) for child in value]
    return value


def query_cargo_metadata(package_path: Path) -> dict[str, JsonValue]:
    """Run ``cargo metadata --no-deps`` for the package at ``package_path``.

    Args:
        package_path: Directory holding the shader crate's ``Cargo.toml``.

    Returns:
        dict[str, JsonValue]: Decoded ``cargo metadata`` document.

    Raises:
        PackageNotFound: If ``package_path`` has no ``Cargo.toml``.
        ConfigurationError: If cargo fails or prints something other than JSON.
    """

    manifest = package_path / MANIFEST_NAME
    if not manifest.is_file():
        raise PackageNotFound(f"'{package_path}' must be a shader crate directory")

    LOGGER.debug("querying cargo metadata for '%s'", manifest)
    command = ["cargo", "metadata", "--no-deps", "--format-version", "1", "--manifest-path", str(manifest)]
    try:
        completed = run_command(command, options=CommandOptions(capture_output=True))
    except (OSError, SubprocessExecutionError) as exc:
        raise ConfigurationError(f"could not run `cargo metadata` on '{manifest}': {exc}") from exc
    try:
        document = json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"`cargo metadata` printed invalid JSON for '{manifest}': {exc}") from exc
    if not isinstance(document, dict):
        raise ConfigurationError(f"`cargo metadata` printed an unexpected document for '{manifest}'")
    return document


def _rust_gpu_table(node: JsonValue) -> ConfigTree:
    if not isinstance(node, dict):
        return {}
    metadata = node.get("metadata")
    if not isinstance(metadata, dict):
        return {}
    table = metadata.get(METADATA_KEY)
    if not isinstance(table, dict):
        return {}
    return cast(ConfigTree, normalize_keys(table))


def workspace_layer(document: Mapping[str, JsonValue]) -> ConfigTree:
    """Return ``[workspace.metadata.rust-gpu]`` from a ``cargo metadata`` document."""

    return _rust_gpu_table(dict(document))


def _comparable_manifest_path(raw: str | Path) -> str:
    return str(raw).replace(_VERBATIM_PREFIX, "")


def package_layer(document: Mapping[str, JsonValue], package_path: Path) -> ConfigTree:
    """Return ``[package.metadata.rust-gpu]`` of the package rooted at ``package_path``.

    Args:
        document: Decoded ``cargo metadata`` output.
        package_path: Directory of the shader crate.

    Returns:
        ConfigTree: Normalised table, empty when the package declares none.
    """

    expected = _comparable_manifest_path(package_path.resolve() / MANIFEST_NAME)
    packages = document.get("packages")
    if not isinstance(packages, list):
        return {}
    for package in packages:
        if not isinstance(package, dict):
            continue
        manifest_path = package.get("manifest_path")
        if not isinstance(manifest_path, str):
            continue
        LOGGER.debug("matching shader crate path with manifest path: %s == %s?", expected, manifest_path)
        if _comparable_manifest_path(manifest_path) == expected:
            return _rust_gpu_table(package)
    return {}


@dataclass(frozen=True, slots=True)
class ManifestTable:
    """The ``rust-gpu`` metadata table of one ``Cargo.toml``.

    Attributes:
        path: Location of the ``Cargo.toml`` file.
        kind: Whether the table sits under ``[workspace]`` or ``[package]``.
        table: Raw table with hyphenated keys.
    """

    path: Path
    kind: ManifestKind
    table: Mapping[str, object]

    @property
    def working_directory(self) -> Path:
        return self.path.parent


def _locate_manifest(path: Path) -> Path:
    if path.is_file() and path.suffix == ".toml":
        return path
    candidate = path / MANIFEST_NAME
    if candidate.is_file():
        return candidate
    LOGGER.error("toml file '%s' is not a file", candidate)
    raise ConfigurationError(f"toml file '{candidate}' is not a file")


def load_manifest_table(path: Path) -> ManifestTable:
    """Read the ``rust-gpu`` metadata table of a ``Cargo.toml``.

    A ``[workspace]`` manifest takes precedence over ``[package]``. For a
    package table the shader crate defaults to the manifest's directory.

    Args:
        path: ``Cargo.toml`` file or the directory containing it.

    Returns:
        ManifestTable: The located table.

    Raises:
        ConfigurationError: If the file is missing, invalid, or lacks the table.
    """

    manifest = _locate_manifest(path)
    LOGGER.info("using toml file '%s'", manifest)
    try:
        document = tomllib.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"could not parse toml file '{manifest}': {exc}") from exc

    kind: ManifestKind
    if "workspace" in document:
        kind = "workspace"
    elif "package" in document:
        kind = "package"
    else:
        raise ConfigurationError(
            f"toml file '{manifest}' must describe a workspace containing [workspace.metadata.rust-gpu.build] "
            "or describe a crate with [package.metadata.rust-gpu.build]"
        )

    table = document.get(kind, {}).get("metadata", {}).get(METADATA_KEY)
    if not isinstance(table, dict):
        raise ConfigurationError(f"toml file '{manifest}' is missing a [{kind}.metadata.{METADATA_KEY}] table")
    table = dict(table)
    if kind == "package":
        install = dict(table.get(INSTALL_SECTION, {}))
        install.setdefault(SHADER_CRATE_KEY, str(manifest.parent.resolve()))
        table[INSTALL_SECTION] = install
    return ManifestTable(path=manifest, kind=kind, table=table)


def _render_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _option_arguments(key: str, value: object) -> list[str]:
    flag = f"--{key}"
    if isinstance(value, bool):
        return [flag] if value else []
    if isinstance(value, str):
        return [flag, value]
    if isinstance(value, list):
        arguments: list[str] = []
        for item in value:
            arguments.extend([flag, _render_scalar(item)])
        return arguments
    if isinstance(value, dict):
        raise ConfigurationError(f"toml option '{key}' must not be a table")
    return [flag, _render_scalar(value)]


def table_to_arguments(manifest_table: ManifestTable) -> list[str]:
    """Convert the ``build`` and ``install`` tables into ``build`` command arguments.

    Strings become option values, ``true`` booleans become bare flags and
    ``false`` ones are omitted, arrays become repeated options, and other
    scalars are rendered as text.

    Args:
        manifest_table: Table returned by :func:`load_manifest_table`.

    Returns:
        list[str]: Arguments starting with ``build``.

    Raises:
        ConfigurationError: If the ``build`` table is missing or not a table.
    """

    table = manifest_table.table
    build = table.get(BUILD_SECTION)
    if not isinstance(build, Mapping):
        raise ConfigurationError(
            f"toml file '{manifest_table.path}' has no [{manifest_table.kind}.metadata.{METADATA_KEY}.build] table"
        )
    arguments = [BUILD_SECTION]
    sections: Sequence[object] = (table.get(INSTALL_SECTION, {}), build)
    for section in sections:
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"toml file '{manifest_table.path}' has a malformed {METADATA_KEY} table")
        for key, value in section.items():
            arguments.extend(_option_arguments(str(key), value))
    return arguments


__all__ = [
    "ManifestTable",
    "load_manifest_table",
    "normalize_keys",
    "package_layer",
    "query_cargo_metadata",
    "table_to_arguments",
    "workspace_layer",
]
