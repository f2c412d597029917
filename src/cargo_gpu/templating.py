# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Placeholder substitution for the packaged driver-crate templates.

Templates are plain text files shipped under ``cargo_gpu/templates``. Each
``${KEY}`` placeholder is replaced with the matching value; every other
character is copied verbatim.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path, PurePosixPath
from string import Template
from typing import Final

from .errors import BackendBuildError

LOGGER = logging.getLogger(__name__)

TEMPLATE_PACKAGE: Final[str] = "cargo_gpu"
TEMPLATE_ROOT: Final[str] = "templates"
DRIVER_BUNDLE: Final[str] = "spirv-builder-cli"


def substitute(text: str, values: Mapping[str, str]) -> str:
    """Replace every ``${KEY}`` placeholder in ``text``.

    Args:
        text: Template text.
        values: Placeholder values keyed by name.

    Returns:
        str: Rendered text.

    Raises:
        BackendBuildError: If ``text`` references a placeholder without a value.
    """

    try:
        return Template(text).substitute(values)
    except (KeyError, ValueError) as exc:
        raise BackendBuildError(f"template placeholder could not be rendered: {exc}") from exc


def bundle_root(bundle: str) -> Traversable:
    """Return the packaged directory holding ``bundle``."""

    return resources.files(TEMPLATE_PACKAGE).joinpath(TEMPLATE_ROOT).joinpath(bundle)


def iter_bundle(bundle: str) -> Iterator[tuple[PurePosixPath, str]]:
    """Yield ``(relative_path, text)`` for every file of ``bundle``, sorted by path."""

    pending: list[tuple[PurePosixPath, Traversable]] = [(PurePosixPath(), bundle_root(bundle))]
    files: list[tuple[PurePosixPath, Traversable]] = []
    while pending:
        prefix, node = pending.pop()
        for child in node.iterdir():
            relative = prefix / child.name
            if child.is_dir():
                pending.append((relative, child))
            elif child.name != "__init__.py":
                files.append((relative, child))
    for relative, node in sorted(files, key=lambda item: item[0]):
        yield relative, node.read_text(encoding="utf-8")


def materialize(bundle: str, destination: Path, values: Mapping[str, str]) -> list[Path]:
    """Render ``bundle`` into ``destination``.

    Args:
        bundle: Name of the packaged template directory.
        destination: Directory receiving the rendered files.
        values: Placeholder values.

    Returns:
        list[Path]: Paths of the written files.

    Raises:
        BackendBuildError: If a file cannot be written.
    """

    written: list[Path] = []
    for relative, text in iter_bundle(bundle):
        target = destination.joinpath(*relative.parts)
        LOGGER.debug("writing %s", target)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(substitute(text, values), encoding="utf-8")
        except OSError as exc:
            raise BackendBuildError(f"could not write '{target}': {exc}") from exc
        written.append(target)
    return written


__all__ = ["DRIVER_BUNDLE", "bundle_root", "iter_bundle", "materialize", "substitute"]
