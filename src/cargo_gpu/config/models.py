# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Validated build and install parameters."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Final, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = "JsonScalar | list[JsonValue] | dict[str, JsonValue]"
ConfigTree: TypeAlias = dict[str, JsonValue]
ConfigFragment: TypeAlias = Mapping[str, JsonValue]

BUILD_SECTION: Final[str] = "build"
INSTALL_SECTION: Final[str] = "install"
DYLIB_PLACEHOLDER: Final[str] = "INTERNALLY_SET"
DEFAULT_SHADER_TARGET: Final[str] = "spirv-unknown-vulkan1.2"
DEFAULT_MANIFEST_FILE: Final[str] = "manifest.json"


class SpirvMetadata(str, Enum):
    """Enumerate how much SPIR-V debug metadata the backend emits."""

    NONE = "none"
    NAME_VARIABLES = "name-variables"
    FULL = "full"


class InstallArgs(BaseModel):
    """Parameters that select and install the backend.

    Paths stay strings so that defaults compare equal to what the command
    line produces; they are canonicalised by the orchestrator.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    dylib_path: str = DYLIB_PLACEHOLDER
    shader_crate: str = "./"
    spirv_builder_source: str | None = None
    spirv_builder_version: str | None = None
    rust_toolchain: str | None = None
    force_spirv_cli_rebuild: bool = False
    auto_install_rust_toolchain: bool = False
    force_overwrite_lockfiles_v4_to_v3: bool = False
    refresh_spirv_source: bool = False


class BuildArgs(BaseModel):
    """Parameters forwarded to the driver when compiling a shader crate."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    output_dir: str = "./"
    watch: bool = False
    no_default_features: bool = False
    features: list[str] = Field(default_factory=list)
    shader_target: str = DEFAULT_SHADER_TARGET
    deny_warnings: bool = False
    debug: bool = False
    capability: list[str] = Field(default_factory=list)
    extension: list[str] = Field(default_factory=list)
    multimodule: bool = False
    spirv_metadata: SpirvMetadata = SpirvMetadata.NONE
    relax_struct_store: bool = False
    relax_logical_pointer: bool = False
    relax_block_layout: bool = False
    uniform_buffer_standard_layout: bool = False
    scalar_block_layout: bool = False
    skip_block_layout: bool = False
    preserve_bindings: bool = False
    manifest_file: str = DEFAULT_MANIFEST_FILE


class BuildCommand(BaseModel):
    """Fully merged configuration of one ``build`` or ``install`` invocation."""

    model_config = ConfigDict(extra="forbid")

    install: InstallArgs = Field(default_factory=InstallArgs)
    build: BuildArgs = Field(default_factory=BuildArgs)

    def driver_payload(self) -> ConfigTree:
        """Return the ``{"install": ..., "build": ...}`` object handed to the driver."""

        return {
            INSTALL_SECTION: self.install.model_dump(mode="json"),
            BUILD_SECTION: self.build.model_dump(mode="json"),
        }


SECTION_MODELS: Final[dict[str, type[BaseModel]]] = {
    INSTALL_SECTION: InstallArgs,
    BUILD_SECTION: BuildArgs,
}


__all__ = [
    "BUILD_SECTION",
    "BuildArgs",
    "BuildCommand",
    "ConfigFragment",
    "ConfigTree",
    "DYLIB_PLACEHOLDER",
    "INSTALL_SECTION",
    "InstallArgs",
    "JsonValue",
    "SECTION_MODELS",
    "SpirvMetadata",
]
