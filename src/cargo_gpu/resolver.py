# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Discover which ``rust-gpu`` a shader crate uses and the toolchain it needs."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Final

from .errors import (
    CheckoutFailed,
    ConfigurationError,
    DependencyNotDeclared,
    PackageNotFound,
    ResolutionError,
    ToolchainDeclarationMissing,
)
from .paths import CacheLayout
from .process import CommandOptions, SubprocessExecutionError, run_command
from .source import (
    COMPONENT_SEPARATOR,
    LocalPath,
    SourceDescriptor,
    from_overrides,
    has_ambiguous_components,
    parse_dependency_line,
    render,
    to_cache_key,
    to_dirname,
)

LOGGER = logging.getLogger(__name__)

SPIRV_STD_CRATE: Final[str] = "spirv-std"
TOOLCHAIN_FILE: Final[str] = "rust-toolchain.toml"
DATE_FORMAT: Final[str] = "%Y-%m-%d"


@dataclass(frozen=True, slots=True)
class ResolvedToolchain:
    """The backend source together with the toolchain that builds it.

    Attributes:
        source: Where the backend comes from.
        channel: rustup channel required by that backend, e.g. ``nightly-2024-04-24``.
        release_date: Commit date of the checked out backend revision.
    """

    source: SourceDescriptor
    channel: str
    release_date: date

    def render(self) -> str:
        return f"{render(self.source)}{COMPONENT_SEPARATOR}{self.channel}"

    def cache_key(self) -> str:
        """Return the filesystem-safe name of this toolchain's cache entry."""

        components = (self.source.origin, self.source.version, self.channel)
        ambiguous = has_ambiguous_components(*components)
        return to_dirname(self.render(), components=components if ambiguous else None)

    def __str__(self) -> str:
        return self.render()


def _run_probe(command: list[str], cwd: Path, failure: type[ResolutionError], message: str) -> str:
    try:
        completed = run_command(command, options=CommandOptions(cwd=cwd, capture_output=True))
    except (OSError, SubprocessExecutionError) as exc:
        raise failure(f"{message}: {exc}") from exc
    return completed.stdout


def _run_streamed(command: list[str], cwd: Path | None, message: str) -> None:
    try:
        run_command(command, options=CommandOptions(cwd=cwd))
    except (OSError, SubprocessExecutionError) as exc:
        raise CheckoutFailed(f"{message}: {exc}") from exc


def read_toolchain_channel(checkout: Path) -> str:
    """Return ``[toolchain].channel`` from the ``rust-toolchain.toml`` in ``checkout``.

    Raises:
        ToolchainDeclarationMissing: If the file, the section or the field is absent.
    """

    toolchain_file = checkout / TOOLCHAIN_FILE
    LOGGER.debug("parsing '%s' for the used toolchain", toolchain_file)
    try:
        document = tomllib.loads(toolchain_file.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ToolchainDeclarationMissing(f"couldn't find `{TOOLCHAIN_FILE}` in '{checkout}'") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ToolchainDeclarationMissing(f"couldn't parse '{toolchain_file}': {exc}") from exc

    toolchain = document.get("toolchain")
    if not isinstance(toolchain, dict):
        raise ToolchainDeclarationMissing(f"couldn't find `[toolchain]` section in '{toolchain_file}'")
    channel = toolchain.get("channel")
    if not isinstance(channel, str) or not channel:
        raise ToolchainDeclarationMissing(f"couldn't find `channel` field in '{toolchain_file}'")
    return channel


class DependencyResolver:
    """Resolve the :class:`ResolvedToolchain` of a shader crate.

    Args:
        layout: Cache layout; backend checkouts live under ``layout.repos_dir``.
        refresh: Fetch new commits and tags into existing checkouts.
    """

    def __init__(self, layout: CacheLayout, *, refresh: bool = False) -> None:
        self._layout = layout
        self._refresh = refresh

    @staticmethod
    def package_directory(package_path: Path) -> Path:
        """Return the canonical shader crate directory.

        Raises:
            PackageNotFound: If ``package_path`` is not a directory with a ``Cargo.toml``.
        """

        resolved = package_path.expanduser().resolve()
        if not resolved.is_dir():
            LOGGER.error("'%s' is not a directory, aborting", resolved)
            raise PackageNotFound(f"'{resolved}' is not a directory")
        if not (resolved / "Cargo.toml").is_file():
            raise PackageNotFound(f"'{resolved}' must be a shader crate directory containing a Cargo.toml")
        return resolved

    def discover_source(self, package_path: Path) -> SourceDescriptor:
        """Find the ``spirv-std`` dependency in the package's dependency tree.

        Args:
            package_path: Shader crate directory.

        Returns:
            SourceDescriptor: Parsed source of the first ``spirv-std`` line.

        Raises:
            PackageNotFound: If the directory is not a package.
            DependencyNotDeclared: If cargo fails or ``spirv-std`` is absent.
        """

        directory = self.package_directory(package_path)
        LOGGER.debug("running `cargo tree` on %s", directory)
        tree = _run_probe(
            ["cargo", "tree", "--workspace", "--prefix", "none"],
            directory,
            DependencyNotDeclared,
            f"could not query the dependency tree of '{directory}'",
        )
        line = next((line for line in tree.splitlines() if SPIRV_STD_CRATE in line), None)
        if line is None:
            raise DependencyNotDeclared(f"`{SPIRV_STD_CRATE}` not found in the dependency tree of '{directory}'")
        return parse_dependency_line(line)

    def checkout_directory(self, source: SourceDescriptor) -> Path:
        """Return where the backend sources of ``source`` are read from."""

        if isinstance(source, LocalPath):
            return _local_repository_root(Path(source.path))
        return self._layout.repos_dir / to_cache_key(source)

    def ensure_checkout(self, source: SourceDescriptor) -> Path:
        """Clone the backend repository if needed and check out ``source.git_ref``.

        Local paths are used in place and never checked out.

        Raises:
            CheckoutFailed: If cloning, fetching or checking out fails.
        """

        directory = self.checkout_directory(source)
        if isinstance(source, LocalPath):
            if not directory.is_dir():
                raise CheckoutFailed(f"local rust-gpu source '{source.path}' does not exist")
            return directory

        if directory.is_dir():
            LOGGER.debug("rust-gpu repository already present at '%s'", directory)
            if self._refresh:
                _run_streamed(
                    ["git", "fetch", "--all", "--tags"], directory, f"couldn't refresh '{directory}'"
                )
        else:
            directory.parent.mkdir(parents=True, exist_ok=True)
            LOGGER.debug("cloning '%s' into '%s'", source.repository, directory)
            _run_streamed(
                ["git", "clone", source.repository, str(directory)],
                None,
                f"couldn't clone `rust-gpu` from '{source.repository}'",
            )

        LOGGER.debug("checking out `rust-gpu` repo at %s to %s", directory, source.git_ref)
        _run_probe(
            ["git", "checkout", source.git_ref],
            directory,
            CheckoutFailed,
            f"couldn't checkout revision '{source.git_ref}' of `rust-gpu` at '{directory}'",
        )
        return directory

    def release_date(self, checkout: Path, git_ref: str) -> date:
        """Return the commit date of ``git_ref`` in ``checkout``.

        Raises:
            CheckoutFailed: If git cannot show the commit or prints an unparsable date.
        """

        output = _run_probe(
            ["git", "show", "--no-patch", "--format=%cd", f"--date=format:{DATE_FORMAT}", git_ref],
            checkout,
            CheckoutFailed,
            f"couldn't get the `rust-gpu` version date for {git_ref} at '{checkout}'",
        )
        text = output.strip().replace("'", "")
        try:
            parsed = date.fromisoformat(text.splitlines()[0] if text else text)
        except ValueError as exc:
            raise CheckoutFailed(f"unexpected commit date '{text}' for {git_ref} at '{checkout}'") from exc
        LOGGER.debug("parsed date for version %s: %s", git_ref, parsed)
        return parsed

    def resolve(
        self,
        package_path: Path,
        explicit_source: str | None = None,
        explicit_version: str | None = None,
        explicit_channel: str | None = None,
    ) -> ResolvedToolchain:
        """Resolve the backend source, its release date and its toolchain channel.

        Args:
            package_path: Shader crate directory.
            explicit_source: ``--spirv-builder-source`` repository URL.
            explicit_version: ``--spirv-builder-version``; skips dependency discovery.
            explicit_channel: ``--rust-toolchain``; overrides the declared channel.

        Returns:
            ResolvedToolchain: The resolved toolchain identity.

        Raises:
            ConfigurationError: If a source URL is given without a version.
            ResolutionError: If any resolution step fails.
        """

        if explicit_version:
            self.package_directory(package_path)
            source = from_overrides(explicit_source, explicit_version)
        elif explicit_source:
            raise ConfigurationError("`--spirv-builder-source` requires `--spirv-builder-version`")
        else:
            source = self.discover_source(package_path)

        checkout = self.ensure_checkout(source)
        release_date = self.release_date(checkout, "HEAD" if isinstance(source, LocalPath) else source.git_ref)
        channel = explicit_channel or read_toolchain_channel(checkout)
        toolchain = ResolvedToolchain(source=source, channel=channel, release_date=release_date)
        LOGGER.debug("resolved rust-gpu toolchain %s released on %s", toolchain, release_date)
        return toolchain


def _local_repository_root(path: Path) -> Path:
    """Return the closest directory at or above ``path`` that declares a toolchain."""

    resolved = path.expanduser().resolve()
    for candidate in (resolved, *resolved.parents):
        if (candidate / TOOLCHAIN_FILE).is_file():
            return candidate
    return resolved


__all__ = ["DependencyResolver", "ResolvedToolchain", "read_toolchain_channel"]
