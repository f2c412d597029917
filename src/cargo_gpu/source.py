# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Descriptors for where the ``rust-gpu`` backend comes from.

A shader crate depends on ``spirv-std``; the way that dependency is declared
(a crates.io version, a git repository at a revision, or a local path) decides
which ``rust-gpu`` sources the backend is built from. The descriptors below
render that choice as a stable string and as a filesystem-safe cache key.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final, TypeAlias
from urllib.parse import SplitResult, urlsplit

from .errors import MalformedSourceDescriptor

LOGGER = logging.getLogger(__name__)

RUST_GPU_REPO: Final[str] = "https://github.com/Rust-GPU/rust-gpu"
REGISTRY_ORIGIN: Final[str] = "crates.io"
COMPONENT_SEPARATOR: Final[str] = "+"
REV_MARKER: Final[str] = "rev="
DIGEST_LENGTH: Final[int] = 10
# ``cargo tree`` suffixes repeated dependencies with ``(*)``.
_DEDUPLICATION_MARKERS: Final[frozenset[str]] = frozenset({"", "*"})

_REPLACED_CHARACTERS: Final[str] = "".join(sorted({os.sep, "\\", "/", ".", ":", "@", "="}))
_REMOVED_CHARACTERS: Final[str] = "{} \n\"'"
_DIRNAME_TABLE: Final[dict[int, str | None]] = {
    **{ord(char): "_" for char in _REPLACED_CHARACTERS},
    **{ord(char): None for char in _REMOVED_CHARACTERS},
}


def to_dirname(text: str, *, components: Sequence[str] | None = None) -> str:
    """Return ``text`` as a string that is safe to use as a directory name.

    Path separators, dots, colons, ``@`` and ``=`` become ``_``; braces,
    spaces, newlines and quotes are dropped. When that substitution cannot be
    reversed for ``text`` (it already contains ``_`` or characters that get
    dropped) a short digest of the original text is appended so that distinct
    inputs keep distinct names. When ``components`` is given the digest is
    taken over them instead, which keeps ``a+b`` / ``c`` apart from ``a`` / ``b+c``.

    Args:
        text: Human-readable identity such as ``"crates.io+0.9.0+nightly-2024-04-24"``.
        components: Parts ``text`` was joined from, when joining them was ambiguous.

    Returns:
        str: Filesystem-safe name.
    """

    sanitized = text.translate(_DIRNAME_TABLE)
    lossy = "_" in text or any(char in text for char in _REMOVED_CHARACTERS)
    if lossy or components is not None:
        material = "\0".join(components) if components is not None else text
        digest = hashlib.sha256(material.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]
        sanitized = f"{sanitized}-{digest}"
    return sanitized


@dataclass(frozen=True, slots=True)
class RegistryVersion:
    """``spirv-std = "0.9.0"``: the conventional crates.io release.

    Attributes:
        version: Version as written by cargo, e.g. ``"v0.9.0"`` or ``"0.9.0"``.
    """

    version: str

    @property
    def origin(self) -> str:
        return REGISTRY_ORIGIN

    @property
    def repository(self) -> str:
        return RUST_GPU_REPO

    @property
    def git_ref(self) -> str:
        """Return the release tag, ``rust-gpu`` tags releases as ``vX.Y.Z``."""

        return f"v{self.version.removeprefix('v')}"


@dataclass(frozen=True, slots=True)
class GitSource:
    """``spirv-std = { git = "...", rev = "..." }``.

    Attributes:
        url: Repository URL without query or fragment.
        revision: Commit-ish that ``git checkout`` can resolve.
    """

    url: str
    revision: str

    @property
    def origin(self) -> str:
        return self.url

    @property
    def version(self) -> str:
        return self.revision

    @property
    def repository(self) -> str:
        return self.url

    @property
    def git_ref(self) -> str:
        return self.revision


@dataclass(frozen=True, slots=True)
class LocalPath:
    """``spirv-std = { path = "..." }``.

    Attributes:
        path: Path to a local ``rust-gpu`` checkout.
        version: Version reported by cargo for the path dependency.
    """

    path: str
    version: str

    @property
    def origin(self) -> str:
        return self.path

    @property
    def repository(self) -> str:
        return self.path

    @property
    def git_ref(self) -> str:
        return self.version


SourceDescriptor: TypeAlias = RegistryVersion | GitSource | LocalPath


def render(source: SourceDescriptor) -> str:
    """Return the canonical ``"{origin}+{version-or-rev}"`` identity of ``source``."""

    return f"{source.origin}{COMPONENT_SEPARATOR}{source.version}"


def has_ambiguous_components(*components: str) -> bool:
    """Return ``True`` when any component contains the ``+`` separator itself."""

    return any(COMPONENT_SEPARATOR in component for component in components)


def to_cache_key(source: SourceDescriptor) -> str:
    """Return the filesystem-safe cache key of ``source``."""

    components = (source.origin, source.version)
    ambiguous = has_ambiguous_components(*components)
    return to_dirname(render(source), components=components if ambiguous else None)


def manifest_fragment(source: SourceDescriptor) -> tuple[str, str]:
    """Return the ``(source, version)`` lines of a ``Cargo.toml`` dependency table.

    The registry variant has no source line. Versions are written without the
    ``v`` prefix cargo prints in its dependency tree.

    Args:
        source: Descriptor the driver crate should depend on.

    Returns:
        tuple[str, str]: Source line and version line.
    """

    match source:
        case RegistryVersion(version=version):
            return "", f'version = "{version.removeprefix("v")}"'
        case GitSource(url=url, revision=revision):
            return f'git = "{url}"', f'rev = "{revision}"'
        case LocalPath(path=path, version=version):
            return f"path = '{path}'", f'version = "{version.removeprefix("v")}"'


def from_overrides(source_url: str | None, version: str) -> SourceDescriptor:
    """Build a descriptor from explicit ``--spirv-builder-*`` overrides.

    Args:
        source_url: Repository URL; ``None`` selects the crates.io release.
        version: Git commit-ish when ``source_url`` is set, otherwise a semantic version.

    Returns:
        SourceDescriptor: :class:`GitSource` or :class:`RegistryVersion`.
    """

    if source_url:
        return GitSource(url=source_url, revision=version)
    return RegistryVersion(version=version)


def parse_dependency_line(line: str) -> SourceDescriptor:
    """Parse one ``cargo tree`` line describing ``spirv-std``.

    ``spirv-std v0.9.0 (https://github.com/Rust-GPU/rust-gpu?rev=54f6978c#54f6978c) (*)``
    parses to ``GitSource("https://github.com/Rust-GPU/rust-gpu", "54f6978c")``.

    Args:
        line: Dependency declaration as printed by ``cargo tree --prefix none``.

    Returns:
        SourceDescriptor: The parsed descriptor.

    Raises:
        MalformedSourceDescriptor: If the version token is missing.
    """

    LOGGER.debug("parsing spirv-std source and version from '%s'", line)
    parts = line.split()
    if len(parts) < 2:
        raise MalformedSourceDescriptor(f"Couldn't find `spirv-std` version in dependency line '{line}'")
    version = parts[1]
    if len(parts) == 2:
        return RegistryVersion(version=version)

    location = parts[2].replace("(", "").replace(")", "")
    if location in _DEDUPLICATION_MARKERS:
        return RegistryVersion(version=version)
    uri = urlsplit(location)
    # A single-letter "scheme" is a Windows drive letter, not a URI scheme.
    if len(uri.scheme) > 1:
        source: SourceDescriptor = _parse_git_source(version, uri)
    else:
        source = LocalPath(path=location, version=version)
    LOGGER.debug("parsed rust-gpu source and version: %r", source)
    return source


def _parse_git_source(version: str, uri: SplitResult) -> GitSource:
    url = f"{uri.scheme}://{uri.netloc}{uri.path}"
    return GitSource(url=url, revision=_parse_git_revision(uri.query, uri.fragment, version))


def _parse_git_revision(query: str, fragment: str, version: str) -> str:
    """Pick the revision from a sane ``rev=`` query, then the fragment, then the version."""

    if REV_MARKER in query and query.count("=") == 1:
        return query.replace(REV_MARKER, "")
    if fragment:
        return fragment
    return version


__all__ = [
    "GitSource",
    "LocalPath",
    "RUST_GPU_REPO",
    "RegistryVersion",
    "SourceDescriptor",
    "from_overrides",
    "has_ambiguous_components",
    "manifest_fragment",
    "parse_dependency_line",
    "render",
    "to_cache_key",
    "to_dirname",
]
