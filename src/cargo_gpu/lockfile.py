# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Temporary ``Cargo.lock`` v4 to v3 rewrites for toolchains older than cargo 1.83.

Cargo 1.83 introduced lockfile format v4. Older toolchains, which older
``rust-gpu`` releases pin, refuse to read it. The v3 and v4 formats only
differ in how source URLs are encoded, so when the user opts in the format
line is rewritten for the duration of the build and restored afterwards.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Final

from packaging.version import Version

from .errors import LockfileFormatError, UnrecognizedLockfileFormat
from .process import CommandOptions, SubprocessExecutionError, run_command
from .versioning import VersionResolver

LOGGER = logging.getLogger(__name__)

LOCKFILE_NAME: Final[str] = "Cargo.lock"
LOCKFILE_V4_CARGO: Final[Version] = Version("1.83.0")
VERSION_LINE_INDEX: Final[int] = 2
LEGACY_FORMAT: Final[int] = 3
CURRENT_FORMAT: Final[int] = 4
OVERWRITE_FLAG: Final[str] = "--force-overwrite-lockfiles-v4-to-v3"
_VERSION_LINE: Final[re.Pattern[str]] = re.compile(r"^version\s*=\s*(\d+)\s*$")


@dataclass(frozen=True, slots=True)
class LockfilePatch:
    """Record of one rewritten lockfile.

    Attributes:
        path: The rewritten ``Cargo.lock``.
        original_version: Format version declared before the rewrite.
        original_line: Exact bytes of the version line before the rewrite.
    """

    path: Path
    original_version: int
    original_line: bytes


def _declared_version(line: bytes) -> int | None:
    match = _VERSION_LINE.match(line.decode("utf-8", errors="replace").strip())
    return int(match.group(1)) if match else None


def _read_lines(lockfile: Path) -> list[bytes]:
    try:
        return lockfile.read_bytes().split(b"\n")
    except OSError as exc:
        raise LockfileFormatError(f"could not read '{lockfile}': {exc}") from exc


def _write_lines(lockfile: Path, lines: list[bytes]) -> None:
    try:
        lockfile.write_bytes(b"\n".join(lines))
    except OSError as exc:
        raise LockfileFormatError(f"could not write '{lockfile}': {exc}") from exc


def check_and_patch(directory: Path, *, allow_rewrite: bool) -> LockfilePatch | None:
    """Rewrite ``directory/Cargo.lock`` from format v4 to v3 when allowed.

    Args:
        directory: Directory that may hold a ``Cargo.lock``.
        allow_rewrite: ``True`` when the user passed ``--force-overwrite-lockfiles-v4-to-v3``.

    Returns:
        LockfilePatch | None: The patch to revert later, or ``None`` when
        nothing was rewritten.

    Raises:
        LockfileFormatError: If the lockfile is v4 and rewriting is not allowed.
        UnrecognizedLockfileFormat: If the lockfile declares an unknown version.
    """

    lockfile = directory / LOCKFILE_NAME
    if not lockfile.is_file():
        return None

    lines = _read_lines(lockfile)
    if len(lines) <= VERSION_LINE_INDEX:
        return None
    line = lines[VERSION_LINE_INDEX]
    version = _declared_version(line)
    if version is None or version == LEGACY_FORMAT:
        return None
    if version != CURRENT_FORMAT:
        raise UnrecognizedLockfileFormat(f"'{lockfile}' declares unrecognized lockfile version {version}")
    if not allow_rewrite:
        raise LockfileFormatError(
            f"'{lockfile}' uses lockfile version 4, which the backend's toolchain cannot read. "
            f"Pass `{OVERWRITE_FLAG}` to temporarily rewrite it to version 3 for the build."
        )

    LOGGER.warning("rewriting '%s' from lockfile version 4 to 3 for the duration of the build", lockfile)
    ending = b"\r" if line.endswith(b"\r") else b""
    lines[VERSION_LINE_INDEX] = f"version = {LEGACY_FORMAT}".encode() + ending
    _write_lines(lockfile, lines)
    return LockfilePatch(path=lockfile, original_version=version, original_line=line)


def revert(patch: LockfilePatch) -> None:
    """Restore the version line recorded in ``patch``, byte for byte.

    Raises:
        LockfileFormatError: If the lockfile cannot be read back or rewritten.
    """

    lines = _read_lines(patch.path)
    if len(lines) <= VERSION_LINE_INDEX:
        raise LockfileFormatError(f"could not restore '{patch.path}': the version line is gone")
    lines[VERSION_LINE_INDEX] = patch.original_line
    _write_lines(patch.path, lines)
    LOGGER.debug("restored lockfile version %s in '%s'", patch.original_version, patch.path)


def workspace_directory(shader_crate: Path) -> Path | None:
    """Return the workspace root of ``shader_crate`` according to cargo, if any."""

    try:
        completed = run_command(
            ["cargo", "locate-project", "--workspace", "--message-format", "plain"],
            options=CommandOptions(cwd=shader_crate, capture_output=True),
        )
    except (OSError, SubprocessExecutionError) as exc:
        LOGGER.debug("could not locate the workspace of '%s': %s", shader_crate, exc)
        return None
    manifest = completed.stdout.strip()
    return Path(manifest).parent if manifest else None


@dataclass(slots=True)
class LockfileCompatibilityGuard:
    """Context manager that patches old-toolchain lockfiles and always reverts them.

    Entering checks the shader crate's lockfile and its workspace's lockfile
    when either the default cargo or the channel's cargo predates 1.83.
    Exiting reverts every recorded patch, whatever the outcome.

    Attributes:
        shader_crate: Canonical shader crate directory.
        channel: rustup channel of the resolved toolchain.
        allow_rewrite: ``True`` when v4 lockfiles may be rewritten.
        versions: Cargo version probe.
    """

    shader_crate: Path
    channel: str
    allow_rewrite: bool = False
    versions: VersionResolver = field(default_factory=VersionResolver)
    patches: list[LockfilePatch] = field(default_factory=list)

    def applies(self) -> bool:
        """Return ``True`` when an involved cargo cannot read lockfile v4."""

        default_cargo = self.versions.cargo_version()
        channel_cargo = self.versions.cargo_version(self.channel)
        LOGGER.debug("default cargo %s, %s cargo %s", default_cargo, self.channel, channel_cargo)
        return VersionResolver.predates(default_cargo, LOCKFILE_V4_CARGO) or VersionResolver.predates(
            channel_cargo, LOCKFILE_V4_CARGO
        )

    def directories(self) -> list[Path]:
        directories = [self.shader_crate]
        workspace = workspace_directory(self.shader_crate)
        if workspace is not None and workspace.resolve() != self.shader_crate.resolve():
            directories.append(workspace)
        return directories

    def __enter__(self) -> LockfileCompatibilityGuard:
        if not self.applies():
            return self
        try:
            for directory in self.directories():
                patch = check_and_patch(directory, allow_rewrite=self.allow_rewrite)
                if patch is not None:
                    self.patches.append(patch)
        except BaseException:
            try:
                self.revert_all()
            except LockfileFormatError:
                LOGGER.error("lockfiles could not all be restored after a failed check")
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc is None:
            self.revert_all()
            return
        try:
            self.revert_all()
        except LockfileFormatError:
            LOGGER.error("lockfiles could not all be restored after a failed build")

    def revert_all(self) -> None:
        """Revert recorded patches, most recent first.

        Every patch is attempted; the first failure is raised once all have run.
        """

        failure: LockfileFormatError | None = None
        while self.patches:
            patch = self.patches.pop()
            try:
                revert(patch)
            except LockfileFormatError as exc:
                LOGGER.error("%s", exc)
                failure = failure or exc
        if failure is not None:
            raise failure


__all__ = [
    "LOCKFILE_V4_CARGO",
    "LockfileCompatibilityGuard",
    "LockfilePatch",
    "check_and_patch",
    "revert",
]
