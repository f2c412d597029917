# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by every stage of the build pipeline."""

from __future__ import annotations


class CargoGpuError(Exception):
    """Base class for every fatal error raised by cargo-gpu.

    Attributes:
        stage: Human-readable name of the pipeline stage that failed.
    """

    stage: str = "cargo-gpu"

    def describe(self) -> str:
        """Return the message prefixed with the failing stage.

        Returns:
            str: Message suitable for the terminal, e.g. ``"[build] ..."``.
        """

        return f"[{self.stage}] {self}"


class ConfigurationError(CargoGpuError):
    """Raised when configuration input is malformed or references unknown paths."""

    stage = "configuration"


class UnknownConfigPath(ConfigurationError):
    """Raised when a configuration layer sets a path absent from the defaults."""

    def __init__(self, pointer: str) -> None:
        super().__init__(f"Configuration option with path `{pointer}` was not found in the default configuration")
        self.pointer = pointer


class ResolutionError(CargoGpuError):
    """Raised when the backend source or its toolchain cannot be resolved."""

    stage = "resolution"


class PackageNotFound(ResolutionError):
    """Raised when the shader crate path is not a package directory."""


class DependencyNotDeclared(ResolutionError):
    """Raised when ``spirv-std`` does not appear in the package dependency tree."""


class MalformedSourceDescriptor(ResolutionError):
    """Raised when a dependency declaration line cannot be parsed."""


class CheckoutFailed(ResolutionError):
    """Raised when cloning or checking out the backend repository fails."""


class ToolchainDeclarationMissing(ResolutionError):
    """Raised when ``rust-toolchain.toml`` lacks a usable channel declaration."""


class ToolchainInstallError(CargoGpuError):
    """Raised when rustup cannot list or install a toolchain or its components."""

    stage = "toolchain"


class BackendBuildError(CargoGpuError):
    """Raised when building the backend plugin and driver fails."""

    stage = "backend build"


class BackendBuildFailed(BackendBuildError):
    """Raised when the build ran but an expected artifact was not produced."""


class LockfileFormatError(CargoGpuError):
    """Raised when a ``Cargo.lock`` format cannot be handled."""

    stage = "lockfile"


class UnrecognizedLockfileFormat(LockfileFormatError):
    """Raised when a lockfile declares a version other than 3 or 4."""


class DriverInvocationError(CargoGpuError):
    """Raised when the driver executable cannot be run."""

    stage = "driver"


class DriverExecutionFailed(DriverInvocationError):
    """Raised when the driver exits with a non-zero status."""

    def __init__(self, returncode: int) -> None:
        super().__init__(f"spirv-builder-cli exited with status {returncode}")
        self.returncode = returncode


class ManifestError(CargoGpuError):
    """Raised when the raw manifest is missing/malformed or the final one cannot be written."""

    stage = "manifest"


class UserDeclined(CargoGpuError):
    """Raised when the user answers "no" to the toolchain consent prompt.

    This is not a failure: the CLI exits with status zero.
    """

    stage = "toolchain"


__all__ = [
    "BackendBuildError",
    "BackendBuildFailed",
    "CargoGpuError",
    "CheckoutFailed",
    "ConfigurationError",
    "DependencyNotDeclared",
    "DriverExecutionFailed",
    "DriverInvocationError",
    "LockfileFormatError",
    "MalformedSourceDescriptor",
    "ManifestError",
    "PackageNotFound",
    "ResolutionError",
    "ToolchainDeclarationMissing",
    "ToolchainInstallError",
    "UnknownConfigPath",
    "UnrecognizedLockfileFormat",
    "UserDeclined",
]
