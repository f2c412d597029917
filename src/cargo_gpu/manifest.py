# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Raw and final shader manifests.

The driver writes ``spirv-manifest.json``, a list of ``{entry, path}``
records. The orchestrator relocates every artifact into the output directory
and publishes ``manifest.json``, a sorted list of :class:`Linkage` records.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from .errors import ManifestError

LOGGER = logging.getLogger(__name__)

RAW_MANIFEST_NAME: Final[str] = "spirv-manifest.json"
ENTRY_PATH_SEPARATOR: Final[str] = "::"


class ShaderModule(BaseModel):
    """One compiled entry point as reported by the driver."""

    model_config = ConfigDict(frozen=True)

    entry: str
    path: Path


class Linkage(BaseModel):
    """Published record linking an entry point to its compiled artifact.

    Attributes:
        source_path: Artifact path relative to the shader crate, ``/`` separated.
        entry_point: Fully qualified entry point, e.g. ``main_fs`` or ``module::main_vs``.
        wgsl_entry_point: ``entry_point`` with every ``::`` removed.
    """

    model_config = ConfigDict(frozen=True)

    source_path: str
    entry_point: str
    wgsl_entry_point: str

    @classmethod
    def new(cls, entry_point: str, source_path: str | Path) -> Linkage:
        """Build a record, deriving the separator-free entry point name."""

        posix = Path(source_path).as_posix() if isinstance(source_path, Path) else source_path.replace("\\", "/")
        return cls(
            source_path=posix,
            entry_point=entry_point,
            wgsl_entry_point=entry_point.replace(ENTRY_PATH_SEPARATOR, ""),
        )

    def sort_key(self) -> tuple[str, str]:
        return (self.source_path, self.entry_point)


_RAW_ADAPTER: Final[TypeAdapter[list[ShaderModule]]] = TypeAdapter(list[ShaderModule])
_FINAL_ADAPTER: Final[TypeAdapter[list[Linkage]]] = TypeAdapter(list[Linkage])


def read_raw_manifest(path: Path) -> list[ShaderModule]:
    """Load the driver's raw manifest.

    Args:
        path: Location of ``spirv-manifest.json``.

    Returns:
        list[ShaderModule]: Records in the order the driver wrote them.

    Raises:
        ManifestError: If the file is missing or malformed.
    """

    if not path.is_file():
        LOGGER.error("missing raw manifest '%s'", path)
        raise ManifestError(f"missing raw manifest '{path}'")
    try:
        return _RAW_ADAPTER.validate_json(path.read_bytes())
    except (OSError, ValidationError) as exc:
        raise ManifestError(f"could not read raw manifest '{path}': {exc}") from exc


def sort_linkage(records: Iterable[Linkage]) -> list[Linkage]:
    """Return ``records`` in publication order: by source path, then entry point."""

    return sorted(records, key=Linkage.sort_key)


def relocate_modules(modules: Sequence[ShaderModule], output_dir: Path, shader_crate: Path) -> list[Linkage]:
    """Copy each artifact into ``output_dir`` and build the sorted linkage.

    Args:
        modules: Records read from the raw manifest.
        output_dir: Directory receiving the artifacts.
        shader_crate: Root of the shader crate; published paths are relative to it.

    Returns:
        list[Linkage]: Sorted linkage records.

    Raises:
        ManifestError: If an artifact cannot be copied.
    """

    records: list[Linkage] = []
    for module in modules:
        if not module.path.name:
            raise ManifestError(f"couldn't parse file name from shader module path '{module.path}'")
        destination = output_dir / module.path.name
        try:
            if module.path.resolve() != destination.resolve():
                shutil.copyfile(module.path, destination)
        except OSError as exc:
            raise ManifestError(f"could not copy shader artifact '{module.path}': {exc}") from exc
        relative = os.path.relpath(destination, shader_crate)
        records.append(Linkage.new(module.entry, Path(relative)))
    return sort_linkage(records)


def render_manifest(records: Iterable[Linkage]) -> str:
    """Serialise ``records`` as pretty JSON with two-space indentation and no trailing newline."""

    payload = [record.model_dump() for record in sort_linkage(records)]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def write_final_manifest(path: Path, records: Iterable[Linkage]) -> Path:
    """Write the final manifest to ``path``.

    Raises:
        ManifestError: If the file cannot be written.
    """

    try:
        path.write_text(render_manifest(records), encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"could not write shader manifest file '{path}': {exc}") from exc
    LOGGER.info("wrote manifest to '%s'", path)
    return path


def read_final_manifest(path: Path) -> list[Linkage]:
    """Load a final manifest previously written by :func:`write_final_manifest`."""

    try:
        return _FINAL_ADAPTER.validate_json(path.read_bytes())
    except (OSError, ValidationError) as exc:
        raise ManifestError(f"could not read shader manifest file '{path}': {exc}") from exc


__all__ = [
    "Linkage",
    "RAW_MANIFEST_NAME",
    "ShaderModule",
    "read_final_manifest",
    "read_raw_manifest",
    "relocate_modules",
    "render_manifest",
    "sort_linkage",
    "write_final_manifest",
]
