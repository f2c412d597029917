# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Drive one invocation from merged configuration to the final shader manifest.

The pipeline advances through :class:`BuildState` in order. Any error moves
it to ``FAILED`` and records the state it was trying to reach. Lockfile
patches made for old toolchains are reverted when the pipeline's
:class:`~contextlib.ExitStack` closes, whether it succeeded or not.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import AbstractContextManager, ExitStack, contextmanager
from enum import Enum
from pathlib import Path
from typing import Final

from .cache import BuiltArtifacts, ToolchainCache
from .config.models import BuildCommand
from .errors import CargoGpuError, DriverExecutionFailed, DriverInvocationError, ManifestError
from .lockfile import LockfileCompatibilityGuard
from .logging import info, ok
from .manifest import RAW_MANIFEST_NAME, read_raw_manifest, relocate_modules, write_final_manifest
from .paths import CacheLayout
from .process import CommandOptions, run_command
from .resolver import DependencyResolver, ResolvedToolchain
from .toolchain import ConsentPrompt, ToolchainInstaller
from .watch import SourceWatcher

LOGGER = logging.getLogger(__name__)

TOOLCHAIN_ENV: Final[str] = "RUSTUP_TOOLCHAIN"

GuardFactory = Callable[[Path, str, bool], AbstractContextManager[object]]
ChangeFeed = Callable[[Path, Path], Iterable[object]]


class BuildState(str, Enum):
    """Enumerate the stages of one build invocation."""

    CONFIG_RESOLVED = "config resolved"
    SOURCE_RESOLVED = "source resolved"
    BACKEND_READY = "backend ready"
    INVOKED = "invoked"
    MANIFEST_WRITTEN = "manifest written"
    FAILED = "failed"


def _default_guard(shader_crate: Path, channel: str, allow_rewrite: bool) -> LockfileCompatibilityGuard:
    return LockfileCompatibilityGuard(shader_crate=shader_crate, channel=channel, allow_rewrite=allow_rewrite)


def _default_changes(shader_crate: Path, output_dir: Path) -> Iterable[object]:
    return SourceWatcher(shader_crate, ignore=[output_dir]).changes()


class BuildOrchestrator:
    """Run the build pipeline for one merged :class:`BuildCommand`.

    Collaborators default to the real implementations and can be replaced.

    Args:
        command: Merged and validated configuration.
        layout: Cache layout, discovered from the environment by default.
        working_directory: Base for relative ``shader_crate``/``output_dir`` paths.
        prompt: Consent prompt used before installing toolchains.
        use_emoji: Whether user-facing messages carry emoji.
        resolver: Dependency resolver.
        installer: Toolchain installer.
        cache: Backend cache.
        guard_factory: Builds the lockfile guard for ``(shader_crate, channel, allow_rewrite)``.
        change_feed: Returns the iterable of change events for watch mode.
    """

    def __init__(
        self,
        command: BuildCommand,
        *,
        layout: CacheLayout | None = None,
        working_directory: Path | None = None,
        prompt: ConsentPrompt | None = None,
        use_emoji: bool = True,
        resolver: DependencyResolver | None = None,
        installer: ToolchainInstaller | None = None,
        cache: ToolchainCache | None = None,
        guard_factory: GuardFactory | None = None,
        change_feed: ChangeFeed | None = None,
    ) -> None:
        self.command = command
        self.layout = layout or CacheLayout.discover()
        self.working_directory = working_directory or Path.cwd()
        self.use_emoji = use_emoji
        self.resolver = resolver or DependencyResolver(self.layout, refresh=command.install.refresh_spirv_source)
        self.installer = installer or ToolchainInstaller(
            auto_install=command.install.auto_install_rust_toolchain,
            prompt=prompt,
        )
        self.cache = cache or ToolchainCache(self.layout)
        self.guard_factory = guard_factory or _default_guard
        self.change_feed = change_feed or _default_changes
        self.state = BuildState.CONFIG_RESOLVED
        self.failed_stage: BuildState | None = None
        self.failure: CargoGpuError | None = None
        self.toolchain: ResolvedToolchain | None = None

    @contextmanager
    def _advance(self, target: BuildState) -> Iterator[None]:
        try:
            yield
        except CargoGpuError as exc:
            self.failed_stage = target
            self.failure = exc
            self.state = BuildState.FAILED
            LOGGER.debug("pipeline failed while reaching '%s'", target.value)
            raise
        self.state = target
        LOGGER.debug("pipeline reached '%s'", target.value)

    def _within(self, raw: str) -> Path:
        path = Path(raw).expanduser()
        return path if path.is_absolute() else self.working_directory / path

    def shader_crate(self) -> Path:
        """Return the canonical shader crate directory."""

        return DependencyResolver.package_directory(self._within(self.command.install.shader_crate))

    def output_dir(self) -> Path:
        """Create the output directory if needed and return its canonical path."""

        directory = self._within(self.command.build.output_dir)
        LOGGER.debug("ensuring output-dir '%s' exists", directory)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ManifestError(f"could not create output directory '{directory}': {exc}") from exc
        return directory.resolve()

    def _prepare_backend(self, stack: ExitStack, shader_crate: Path) -> BuiltArtifacts:
        install = self.command.install
        with self._advance(BuildState.SOURCE_RESOLVED):
            self.layout.ensure()
            LOGGER.info("cache directory is '%s'", self.layout.root)
            self.toolchain = self.resolver.resolve(
                shader_crate,
                install.spirv_builder_source,
                install.spirv_builder_version,
                install.rust_toolchain,
            )
        toolchain = self.toolchain

        with self._advance(BuildState.BACKEND_READY):
            self.installer.ensure(toolchain.channel)
            stack.enter_context(
                self.guard_factory(shader_crate, toolchain.channel, install.force_overwrite_lockfiles_v4_to_v3)
            )
            if not self.cache.artifacts(toolchain).exist() or install.force_spirv_cli_rebuild:
                info(f"Compiling shader-specific `spirv-builder-cli` for {shader_crate}", use_emoji=self.use_emoji)
            return self.cache.ensure_built(toolchain, force=install.force_spirv_cli_rebuild)

    def install(self) -> BuiltArtifacts:
        """Resolve and build the backend without compiling shaders.

        Returns:
            BuiltArtifacts: The cached plugin and driver.
        """

        shader_crate = self.shader_crate()
        with ExitStack() as stack:
            return self._prepare_backend(stack, shader_crate)

    def driver_argument(self, artifacts: BuiltArtifacts, shader_crate: Path, output_dir: Path) -> str:
        """Serialise the configuration handed to the driver as its single argument."""

        command = self.command.model_copy(
            update={
                "install": self.command.install.model_copy(
                    update={"dylib_path": str(artifacts.plugin), "shader_crate": str(shader_crate)}
                ),
                "build": self.command.build.model_copy(update={"output_dir": str(output_dir)}),
            }
        )
        return json.dumps(command.driver_payload(), indent=2)

    def _invoke(self, artifacts: BuiltArtifacts, shader_crate: Path, output_dir: Path) -> None:
        argument = self.driver_argument(artifacts, shader_crate, output_dir)
        LOGGER.info("using spirv-builder-cli arg: %s", argument)
        overrides = {TOOLCHAIN_ENV: self.toolchain.channel} if self.toolchain is not None else None
        options = CommandOptions(cwd=shader_crate, env_overrides=overrides, check=False)
        try:
            completed = run_command([str(artifacts.driver), argument], options=options)
        except (OSError, ValueError) as exc:
            raise DriverInvocationError(f"could not run '{artifacts.driver}': {exc}") from exc
        if completed.returncode != 0:
            raise DriverExecutionFailed(completed.returncode)

    def _publish(self, shader_crate: Path, output_dir: Path) -> Path:
        raw_manifest = output_dir / RAW_MANIFEST_NAME
        modules = read_raw_manifest(raw_manifest)
        LOGGER.debug("successfully built shaders, raw manifest is at '%s'", raw_manifest)
        linkage = relocate_modules(modules, output_dir, shader_crate)
        manifest = write_final_manifest(output_dir / self.command.build.manifest_file, linkage)
        try:
            raw_manifest.unlink(missing_ok=True)
        except OSError as exc:
            raise ManifestError(f"could not remove raw manifest '{raw_manifest}': {exc}") from exc
        return manifest

    def compile(self, artifacts: BuiltArtifacts, shader_crate: Path, output_dir: Path) -> Path:
        """Run the driver and publish the final manifest.

        Returns:
            Path: Location of the final manifest.
        """

        with self._advance(BuildState.INVOKED):
            self._invoke(artifacts, shader_crate, output_dir)
        with self._advance(BuildState.MANIFEST_WRITTEN):
            return self._publish(shader_crate, output_dir)

    def run(self) -> Path:
        """Run the whole pipeline; in watch mode, recompile on every change.

        Returns:
            Path: Location of the final manifest. Watch mode only returns when
            the change feed is exhausted.

        Raises:
            CargoGpuError: From whichever stage failed.
        """

        with ExitStack() as stack:
            with self._advance(BuildState.CONFIG_RESOLVED):
                shader_crate = self.shader_crate()
                output_dir = self.output_dir()
            artifacts = self._prepare_backend(stack, shader_crate)
            info(f"Running `spirv-builder-cli` to compile shader at {shader_crate}...", use_emoji=self.use_emoji)
            manifest = self.compile(artifacts, shader_crate, output_dir)
            ok(f"Wrote shader manifest to {manifest}", use_emoji=self.use_emoji)
            if self.command.build.watch:
                manifest = self.watch(artifacts, shader_crate, output_dir)
        return manifest

    def watch(self, artifacts: BuiltArtifacts, shader_crate: Path, output_dir: Path) -> Path:
        """Recompile after every change event until the feed ends."""

        manifest = output_dir / self.command.build.manifest_file
        info(f"Watching {shader_crate} for changes...", use_emoji=self.use_emoji)
        for _ in self.change_feed(shader_crate, output_dir):
            info("Change detected, recompiling shaders...", use_emoji=self.use_emoji)
            manifest = self.compile(artifacts, shader_crate, output_dir)
            ok(f"Wrote shader manifest to {manifest}", use_emoji=self.use_emoji)
        return manifest


__all__ = ["BuildOrchestrator", "BuildState"]
