# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-toolchain cache of the built backend plugin and driver executable."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Final

from .errors import BackendBuildError, BackendBuildFailed
from .paths import CacheLayout
from .process import CommandOptions, SubprocessExecutionError, run_command
from .resolver import ResolvedToolchain
from .source import manifest_fragment
from .templating import DRIVER_BUNDLE, materialize

LOGGER = logging.getLogger(__name__)

PRE_CLI_CUTOVER: Final[date] = date(2024, 4, 24)
PRE_CLI_FEATURE: Final[str] = "spirv-builder-pre-cli"
CURRENT_FEATURE: Final[str] = "spirv-builder-0_10"
DRIVER_NAME: Final[str] = "spirv-builder-cli"
PLUGIN_STEM: Final[str] = "rustc_codegen_spirv"


def plugin_filename(platform: str = sys.platform) -> str:
    """Return the platform's file name of the backend plugin dynamic library."""

    if platform == "win32":
        return f"{PLUGIN_STEM}.dll"
    if platform == "darwin":
        return f"lib{PLUGIN_STEM}.dylib"
    return f"lib{PLUGIN_STEM}.so"


def driver_filename(platform: str = sys.platform) -> str:
    """Return the file name cargo gives the driver executable on ``platform``."""

    return f"{DRIVER_NAME}.exe" if platform == "win32" else DRIVER_NAME


def required_feature(release_date: date) -> str:
    """Return the driver feature matching the backend's builder interface.

    Backends released before 2024-04-24 predate the builder interface the
    driver uses by default.
    """

    return PRE_CLI_FEATURE if release_date < PRE_CLI_CUTOVER else CURRENT_FEATURE


@dataclass(frozen=True, slots=True)
class BuiltArtifacts:
    """Locations of the cached backend plugin and driver executable."""

    plugin: Path
    driver: Path

    def exist(self) -> bool:
        return self.plugin.is_file() and self.driver.is_file()


@dataclass(slots=True)
class ToolchainCache:
    """Map resolved toolchains to cache entries and build them on demand.

    Attributes:
        layout: Cache layout; entries live under ``layout.builders_dir``.
        platform: ``sys.platform`` value deciding artifact file names.
    """

    layout: CacheLayout
    platform: str = field(default=sys.platform)

    def checkout_path(self, toolchain: ResolvedToolchain) -> Path:
        """Create (if needed) and return the cache entry of ``toolchain``."""

        checkout = self.layout.builders_dir / toolchain.cache_key()
        try:
            checkout.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackendBuildError(f"could not create checkout dir '{checkout}': {exc}") from exc
        return checkout

    def artifacts(self, toolchain: ResolvedToolchain) -> BuiltArtifacts:
        """Return where the artifacts of ``toolchain`` live once built."""

        checkout = self.checkout_path(toolchain)
        return BuiltArtifacts(
            plugin=checkout / plugin_filename(self.platform),
            driver=checkout / driver_filename(self.platform),
        )

    def template_values(self, toolchain: ResolvedToolchain) -> dict[str, str]:
        source_line, version_line = manifest_fragment(toolchain.source)
        return {
            "CHANNEL": toolchain.channel,
            "SOURCE": source_line,
            "VERSION": version_line,
            "FEATURE": required_feature(toolchain.release_date),
        }

    def ensure_built(self, toolchain: ResolvedToolchain, force: bool = False) -> BuiltArtifacts:
        """Return the plugin and driver of ``toolchain``, building them if needed.

        Args:
            toolchain: Resolved toolchain identity.
            force: Rebuild even when both artifacts exist.

        Returns:
            BuiltArtifacts: Paths of the plugin and driver in the cache entry.

        Raises:
            BackendBuildError: If cargo fails.
            BackendBuildFailed: If the build did not produce an expected artifact.
        """

        artifacts = self.artifacts(toolchain)
        checkout = artifacts.driver.parent
        if artifacts.exist():
            LOGGER.info("cargo-gpu artifacts are already installed in '%s'", checkout)
            if not force:
                LOGGER.info("...and so we are aborting the install step.")
                return artifacts

        LOGGER.debug("writing %s source files into '%s'", DRIVER_BUNDLE, checkout)
        materialize(DRIVER_BUNDLE, checkout, self.template_values(toolchain))

        self._cargo(["cargo", "update"], checkout, "cargo update failed")
        feature = required_feature(toolchain.release_date)
        build = [
            "cargo",
            f"+{toolchain.channel}",
            "build",
            "--release",
            "--no-default-features",
            "--features",
            feature,
        ]
        LOGGER.debug("building artifacts with `%s`", " ".join(build))
        self._cargo(build, checkout, "building spirv-builder-cli failed")

        release = checkout / "target" / "release"
        self._relocate(release / plugin_filename(self.platform), artifacts.plugin, release)
        self._relocate(release / driver_filename(self.platform), artifacts.driver, release)
        return artifacts

    @staticmethod
    def _cargo(args: list[str], checkout: Path, message: str) -> None:
        try:
            run_command(args, options=CommandOptions(cwd=checkout))
        except (OSError, SubprocessExecutionError) as exc:
            raise BackendBuildError(f"{message}: {exc}") from exc

    @staticmethod
    def _relocate(built: Path, destination: Path, release: Path) -> None:
        if not built.is_file():
            LOGGER.error("could not find %s", built)
            if release.is_dir():
                LOGGER.debug("contents of '%s':", release)
                for entry in sorted(os.listdir(release)):
                    LOGGER.debug("%s", entry)
            raise BackendBuildFailed(f"spirv-builder-cli build failed: '{built}' was not produced")
        LOGGER.info("successfully built %s", built)
        try:
            os.replace(built, destination)
        except OSError as exc:
            raise BackendBuildError(f"could not move '{built}' into the cache: {exc}") from exc


__all__ = [
    "BuiltArtifacts",
    "ToolchainCache",
    "driver_filename",
    "plugin_filename",
    "required_feature",
]
