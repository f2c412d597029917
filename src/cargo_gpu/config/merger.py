# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Default-aware merging of layered build configuration.

Configuration comes from four layers, lowest priority first: the defaults of
the ``build`` command, ``[workspace.metadata.rust-gpu]``,
``[package.metadata.rust-gpu]`` and the command line. A leaf from a higher
layer replaces the accumulated value only when it differs from the default
at the same JSON pointer, so a layer that merely repeats a default never
erases a value set by a lower layer.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Final, cast

import click
from pydantic import ValidationError

from ..errors import ConfigurationError, UnknownConfigPath
from .models import (
    BUILD_SECTION,
    SECTION_MODELS,
    BuildCommand,
    ConfigFragment,
    ConfigTree,
    JsonValue,
)
from .sources import normalize_keys, package_layer, query_cargo_metadata, workspace_layer

LOGGER = logging.getLogger(__name__)

SUBCOMMAND_WORDS: Final[frozenset[str]] = frozenset({"gpu", "build", "install"})

MetadataLoader = Callable[[Path], Mapping[str, JsonValue]]


def _build_command() -> click.Command:
    """Return the Click command behind ``cargo-gpu build``."""

    # Imported lazily: the CLI module imports the orchestrator, which imports this module.
    import typer.main

    from ..cli.app import app

    group = typer.main.get_command(app)
    if not isinstance(group, click.Group):
        raise ConfigurationError("the cargo-gpu application does not expose subcommands")
    command = group.commands.get(BUILD_SECTION)
    if command is None:
        raise ConfigurationError("the cargo-gpu application has no `build` command")
    return command


def params_to_tree(params: Mapping[str, object]) -> ConfigTree:
    """Convert parsed command parameters into a ``{"install", "build"}`` tree.

    Parameters that are not configuration fields (``--emoji``, ``--verbose``)
    are ignored, and ``None`` values fall back to the field default.

    Args:
        params: Parameter values keyed by their Python names.

    Returns:
        ConfigTree: JSON-compatible tree holding every configuration field.

    Raises:
        ConfigurationError: If a value fails validation.
    """

    tree: ConfigTree = {}
    for section, model in SECTION_MODELS.items():
        values = {name: params[name] for name in model.model_fields if params.get(name) is not None}
        try:
            tree[section] = model.model_validate(values).model_dump(mode="json")
        except ValidationError as exc:
            raise ConfigurationError(f"invalid `{section}` arguments: {exc}") from exc
    return tree


def cli_args_to_tree(args: Sequence[str]) -> ConfigTree:
    """Parse ``args`` with the ``build`` command and return the resulting tree.

    Leading subcommand words (``gpu``, ``build``, ``install``) are dropped first so
    that both ``["build", "--debug"]`` and ``["--debug"]`` are accepted.

    Raises:
        ConfigurationError: If Click rejects the arguments.
    """

    filtered = list(args)
    while filtered and filtered[0] in SUBCOMMAND_WORDS:
        filtered.pop(0)
    command = _build_command()
    try:
        context = command.make_context(BUILD_SECTION, filtered)
    except click.ClickException as exc:
        raise ConfigurationError(f"invalid command line arguments: {exc.format_message()}") from exc
    with context:
        return params_to_tree(context.params)


@lru_cache(maxsize=1)
def _cached_defaults() -> ConfigTree:
    return cli_args_to_tree([])


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def lookup_pointer(tree: JsonValue, pointer: str) -> JsonValue:
    """Return the value of ``tree`` at the JSON pointer ``pointer``.

    Raises:
        UnknownConfigPath: If the pointer does not resolve.
    """

    node = tree
    for raw_token in pointer.split("/")[1:]:
        token = _unescape(raw_token)
        if not isinstance(node, dict) or token not in node:
            raise UnknownConfigPath(pointer)
        node = node[token]
    return node


class ConfigMerger:
    """Resolve the configuration of one invocation from all of its layers.

    Args:
        metadata_loader: Callable returning the ``cargo metadata`` document of
            a package directory. Defaults to running ``cargo metadata``.
    """

    def __init__(self, metadata_loader: MetadataLoader | None = None) -> None:
        self._metadata_loader = metadata_loader or query_cargo_metadata

    def defaults(self) -> ConfigTree:
        """Return a fresh copy of the default configuration tree."""

        return copy.deepcopy(_cached_defaults())

    def merge(self, base: ConfigFragment, patch: JsonValue, pointer: str | None = None) -> ConfigTree:
        """Merge ``patch`` over ``base`` and return the result.

        Args:
            base: Accumulated configuration, left untouched.
            patch: Higher-priority layer.
            pointer: JSON pointer of ``base`` inside the full tree, ``None`` at the root.

        Returns:
            ConfigTree: Merged configuration.

        Raises:
            UnknownConfigPath: If ``patch`` sets a leaf the defaults do not define.
        """

        merged = self._merge_value(copy.deepcopy(dict(base)), patch, pointer, self.defaults())
        return cast(ConfigTree, merged)

    def _merge_value(self, left: JsonValue, right: JsonValue, pointer: str | None, defaults: ConfigTree) -> JsonValue:
        if isinstance(left, dict) and isinstance(right, Mapping):
            for key, value in right.items():
                child_pointer = f"{pointer or ''}/{_escape(key)}"
                left[key] = self._merge_value(left.get(key), value, child_pointer, defaults)
            return left
        if pointer is None:
            return copy.deepcopy(right)
        default = lookup_pointer(defaults, pointer)
        if right != default:
            LOGGER.debug("config %s = %r", pointer, right)
            return copy.deepcopy(right)
        return left

    def merge_layers(self, layers: Iterable[JsonValue]) -> ConfigTree:
        """Merge ``layers`` over the defaults, lowest priority first."""

        tree = self.defaults()
        for layer in layers:
            tree = self.merge(tree, normalize_keys(layer))
        return tree

    def resolve(self, package_path: Path, cli_tree: ConfigFragment) -> ConfigTree:
        """Merge defaults, workspace metadata, package metadata and ``cli_tree``.

        Args:
            package_path: Directory of the shader crate whose metadata is read.
            cli_tree: Tree produced by :func:`cli_args_to_tree` or :func:`params_to_tree`.

        Returns:
            ConfigTree: The fully merged configuration.
        """

        document = self._metadata_loader(package_path)
        workspace = workspace_layer(document)
        package = package_layer(document, package_path)
        LOGGER.debug("workspace config layer: %r", workspace)
        LOGGER.debug("package config layer: %r", package)
        return self.merge_layers([workspace, package, dict(cli_tree)])

    @staticmethod
    def to_command(tree: ConfigFragment) -> BuildCommand:
        """Validate a merged tree into a :class:`BuildCommand`.

        Raises:
            ConfigurationError: If the tree does not describe valid arguments.
        """

        try:
            return BuildCommand.model_validate(dict(tree))
        except ValidationError as exc:
            raise ConfigurationError(f"invalid merged configuration: {exc}") from exc


__all__ = ["ConfigMerger", "cli_args_to_tree", "lookup_pointer", "params_to_tree"]
